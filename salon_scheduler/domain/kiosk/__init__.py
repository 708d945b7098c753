"""Kiosk domain - self check-in by phone and walk-in registration"""

"""Waitlist domain - walk-in queue with derived positions and wait estimates"""

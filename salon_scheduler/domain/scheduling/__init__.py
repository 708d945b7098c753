"""Scheduling domain - schedules, availability, booking and appointment lifecycle"""

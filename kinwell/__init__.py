"""Reminder and insight notification engine for family health records.

This package contains the domain models and the notification services,
isolated from UI and persistence concerns for easy testing and reasoning.
"""

"""Shared validators package for the application.

This package contains reusable validation functions that can be used
across different features and schemas.

Available validators:
- password.py: Password complexity rules for signup
- device.py: Device descriptor completeness
"""

"""
Tests for authentication app.

This package contains test modules for:
- test_managers.py: UserManager creation rules and display defaults
- test_views.py: Bearer token issuance

Usage:
    pytest authentication/tests/
"""

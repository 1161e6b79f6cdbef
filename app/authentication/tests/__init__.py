"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: User model and UserManager tests
- test_permissions.py: Role and tenant permission classes
- test_views.py: Token and /me endpoint tests
- test_middleware.py: WebSocket JWT middleware tests

Usage:
    pytest authentication/tests/
    pytest authentication/tests/test_models.py
"""

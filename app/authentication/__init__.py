"""
Authentication application.

Email-based users that belong to one school and hold one role (school
admin, accountant or student), plus JWT issuance for the REST API and JWT
resolution for WebSocket handshakes.

Key components:
    - User model: Email login, tenant and role
    - Permissions: HasActiveTenant and the role checks used by the fees API
    - JWTAuthMiddleware: Attaches the token's user to WebSocket scopes

Usage:
    from authentication.models import User, UserRole
    from authentication.permissions import IsFinanceStaff
"""

"""
Permission classes for the school fees API.

Every fee endpoint combines HasActiveTenant with one role check:
- HasActiveTenant: authenticated user attached to an active school
- IsFinanceStaff: school admin or accountant
- IsSchoolAdmin: school admin only (dispute resolution)
- IsStudent: student only (paying, raising disputes)

Row-level isolation is not done here: querysets are always narrowed with
for_tenant(), so objects of another school are simply not found.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class HasActiveTenant(permissions.BasePermission):
    """Allows access only to users of an active school."""

    message = "Your account is not attached to an active school."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(
            user and user.is_authenticated and user.has_active_tenant
        )


class IsFinanceStaff(permissions.BasePermission):
    """Allows access to school admins and accountants."""

    message = "Only school finance staff can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user.is_authenticated and request.user.is_finance_staff)


class IsSchoolAdmin(permissions.BasePermission):
    """Allows access to school admins only."""

    message = "Only a school admin can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user.is_authenticated and request.user.is_school_admin)


class IsStudent(permissions.BasePermission):
    """Allows access to students only."""

    message = "Only students can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        return bool(request.user.is_authenticated and request.user.is_student)

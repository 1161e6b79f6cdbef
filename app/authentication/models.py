"""
Authentication models.

This module defines the custom user model. A user belongs to one school
(tenant) and holds exactly one role inside it.

Related files:
    - managers.py: Custom user manager for email-based creation
    - permissions.py: DRF permission classes built on the role

Security:
    - User passwords hashed with Django's password hashers
    - Only platform superusers may exist without a tenant
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class UserRole(models.TextChoices):
    """
    Roles a user can hold inside a school.

    ADMIN and ACCOUNTANT are finance staff: they see every invoice in the
    school, generate fee cycles and read reports. Only ADMIN resolves
    disputes. STUDENT sees and pays only their own invoices.
    """

    ADMIN = "admin", "School Admin"
    ACCOUNTANT = "accountant", "Accountant"
    STUDENT = "student", "Student"


FINANCE_ROLES = frozenset({UserRole.ADMIN, UserRole.ACCOUNTANT})


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        full_name: Name shown on invoices and receipts
        tenant: School the user belongs to (null only for superusers)
        role: Role inside the school
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        student = User.objects.create_user(
            email="asha@ghs.example",
            password="securepassword",
            tenant=school,
            role=UserRole.STUDENT,
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    full_name = models.CharField(
        max_length=200,
        blank=True,
        help_text="Full name as printed on invoices and receipts",
    )

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="users",
        help_text="School this user belongs to",
    )
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.STUDENT,
        db_index=True,
        help_text="Role inside the school",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        indexes = [
            models.Index(fields=["tenant", "role"], name="user_tenant_role_idx"),
        ]

    def __str__(self) -> str:
        return self.email

    @property
    def is_school_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_finance_staff(self) -> bool:
        return self.role in FINANCE_ROLES

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    @property
    def has_active_tenant(self) -> bool:
        """True when the user belongs to a school that is still active."""
        return self.tenant_id is not None and self.tenant.is_active

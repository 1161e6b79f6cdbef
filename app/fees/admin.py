"""
Fees admin configuration.

Payment attempts, audit logs and receipts are read-only here: their state
only changes through the services, so admin edits could not be audited.
"""

from django.contrib import admin

from fees.models import (
    DocumentSequence,
    FeeInvoice,
    PaymentAttempt,
    PaymentAuditLog,
    PaymentDispute,
    Receipt,
    ReconciliationRun,
)


class ReadOnlyAdminMixin:
    """Disables add, change and delete in the admin."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(FeeInvoice)
class FeeInvoiceAdmin(admin.ModelAdmin):
    list_display = [
        "invoice_number",
        "tenant",
        "student",
        "total_amount",
        "paid_amount",
        "balance_amount",
        "status",
        "due_date",
    ]
    list_filter = ["status", "tenant"]
    search_fields = ["invoice_number", "student__email"]
    readonly_fields = [
        "id",
        "invoice_number",
        "paid_amount",
        "balance_amount",
        "status",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]


class PaymentAuditLogInline(admin.TabularInline):
    model = PaymentAuditLog
    extra = 0
    can_delete = False
    fields = ["created_at", "previous_status", "new_status", "trigger_source", "actor", "note"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(PaymentAttempt)
class PaymentAttemptAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin view of payment attempts.

    Status is an FSM field; use the dispute workflow to settle an attempt.
    """

    list_display = [
        "id",
        "tenant",
        "invoice",
        "student",
        "amount",
        "status",
        "trigger_source",
        "gateway_ref_id",
        "created_at",
    ]
    list_filter = ["status", "trigger_source", "tenant"]
    search_fields = ["id", "gateway_ref_id", "idempotency_key", "invoice__invoice_number"]
    inlines = [PaymentAuditLogInline]
    ordering = ["-created_at"]


@admin.register(PaymentDispute)
class PaymentDisputeAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "id",
        "tenant",
        "invoice",
        "student",
        "amount",
        "status",
        "resolution_action",
        "created_at",
    ]
    list_filter = ["status", "resolution_action", "tenant"]
    search_fields = ["id", "transaction_reference", "bank_reference_number"]
    ordering = ["-created_at"]


@admin.register(Receipt)
class ReceiptAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["receipt_number", "tenant", "invoice", "student", "amount", "issued_at"]
    search_fields = ["receipt_number", "invoice__invoice_number"]
    ordering = ["-issued_at"]


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["tenant", "prefix", "year", "last_value"]
    list_filter = ["prefix", "year"]


@admin.register(ReconciliationRun)
class ReconciliationRunAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin view of reconciliation runs.

    Runs are created by the celery-beat task; failed runs carry the error.
    """

    list_display = [
        "id",
        "status",
        "started_at",
        "completed_at",
        "attempts_checked",
        "healed",
        "escalated",
        "still_pending",
        "errors",
    ]
    list_filter = ["status"]
    readonly_fields = ["error_message"]
    ordering = ["-started_at"]

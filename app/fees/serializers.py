"""
Serializers for the fees API.

Read serializers render models for REST responses and for the dispute feed,
so every field renders to plain JSON types (invoice and attempt ids as strings, money
as decimal strings). Input serializers only validate request bodies; the
services do the work.

Serializer Hierarchy:
    FeeInvoiceSerializer / FeeInvoiceCreateSerializer
    PaymentAttemptSerializer / PaymentAuditLogSerializer
    PaymentDisputeSerializer / DisputeCreateSerializer / DisputeResolveSerializer
    ReceiptSerializer
    CollectionReportSerializer
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from fees.models import (
    FeeInvoice,
    PaymentAttempt,
    PaymentAuditLog,
    PaymentDispute,
    Receipt,
)
from fees.state_machines import DisputeAction

MIN_AMOUNT = Decimal("0.01")


# =============================================================================
# Invoices
# =============================================================================


class FeeInvoiceSerializer(serializers.ModelSerializer):
    student = serializers.IntegerField(source="student_id", read_only=True)
    student_name = serializers.CharField(source="student.full_name", read_only=True)

    class Meta:
        model = FeeInvoice
        fields = [
            "id",
            "invoice_number",
            "student",
            "student_name",
            "billing_period_label",
            "total_amount",
            "late_fee_applied",
            "paid_amount",
            "balance_amount",
            "status",
            "issued_date",
            "due_date",
            "cancelled_at",
            "remarks",
            "created_at",
        ]
        read_only_fields = fields


class FeeInvoiceCreateSerializer(serializers.Serializer):
    """
    Request body for generating an invoice.

    The student must be a student of the caller's school; InvoiceService
    checks that.
    """

    student_id = serializers.IntegerField(min_value=1)
    total_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=MIN_AMOUNT
    )
    late_fee_applied = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.00"),
        default=Decimal("0.00"),
    )
    due_date = serializers.DateField()
    issued_date = serializers.DateField(required=False)
    billing_period_label = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    remarks = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        issued_date = attrs.get("issued_date")
        if issued_date and attrs["due_date"] < issued_date:
            raise serializers.ValidationError(
                {"due_date": "Due date cannot be before the issue date."}
            )
        return attrs


# =============================================================================
# Payment Attempts
# =============================================================================


class PaymentAttemptSerializer(serializers.ModelSerializer):
    student = serializers.IntegerField(source="student_id", read_only=True)
    student_name = serializers.CharField(source="student.full_name", read_only=True)
    invoice = serializers.UUIDField(source="invoice_id", read_only=True)
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)

    class Meta:
        model = PaymentAttempt
        fields = [
            "id",
            "invoice",
            "invoice_number",
            "student",
            "student_name",
            "amount",
            "status",
            "gateway_ref_id",
            "idempotency_key",
            "trigger_source",
            "failure_reason",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentAuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentAuditLog
        fields = ["previous_status", "new_status", "trigger_source", "note", "created_at"]
        read_only_fields = fields


class PaymentInitiationSerializer(serializers.Serializer):
    attempt = PaymentAttemptSerializer()
    checkout_url = serializers.URLField()


# =============================================================================
# Disputes
# =============================================================================


class PaymentDisputeSerializer(serializers.ModelSerializer):
    student = serializers.IntegerField(source="student_id", read_only=True)
    student_name = serializers.CharField(source="student.full_name", read_only=True)
    invoice = serializers.UUIDField(source="invoice_id", read_only=True)
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)
    payment_attempt = serializers.UUIDField(source="payment_attempt_id", read_only=True)
    resolved_by = serializers.IntegerField(source="resolved_by_id", read_only=True)

    class Meta:
        model = PaymentDispute
        fields = [
            "id",
            "invoice",
            "invoice_number",
            "student",
            "student_name",
            "payment_attempt",
            "transaction_reference",
            "bank_reference_number",
            "amount",
            "student_note",
            "status",
            "admin_note",
            "resolution_action",
            "resolved_by",
            "resolved_at",
            "version",
            "created_at",
        ]
        read_only_fields = fields


class DisputeCreateSerializer(serializers.Serializer):
    invoice_id = serializers.UUIDField()
    payment_attempt_id = serializers.UUIDField(required=False, allow_null=True)
    transaction_reference = serializers.CharField(max_length=255)
    bank_reference_number = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=MIN_AMOUNT)
    student_note = serializers.CharField()


class DisputeResolveSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=DisputeAction.choices)
    note = serializers.CharField()
    version = serializers.IntegerField(required=False, min_value=1)


class DisputeResolutionSerializer(serializers.Serializer):
    dispute = PaymentDisputeSerializer()
    invoice = FeeInvoiceSerializer()
    receipt_number = serializers.SerializerMethodField()
    replayed = serializers.BooleanField()

    def get_receipt_number(self, obj) -> str | None:
        return obj.receipt.receipt_number if obj.receipt else None


class AdminDisputeOverviewSerializer(serializers.Serializer):
    disputes = PaymentDisputeSerializer(many=True)
    stuck_payments = PaymentAttemptSerializer(many=True)


# =============================================================================
# Receipts & Reports
# =============================================================================


class ReceiptSerializer(serializers.ModelSerializer):
    payment_attempt = serializers.UUIDField(source="payment_attempt_id", read_only=True)
    invoice = serializers.UUIDField(source="invoice_id", read_only=True)
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)
    student = serializers.IntegerField(source="student_id", read_only=True)

    class Meta:
        model = Receipt
        fields = [
            "id",
            "receipt_number",
            "payment_attempt",
            "invoice",
            "invoice_number",
            "student",
            "amount",
            "issued_at",
        ]
        read_only_fields = fields


class CollectionReportQuerySerializer(serializers.Serializer):
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and start > end:
            raise serializers.ValidationError(
                {"end_date": "End date cannot be before the start date."}
            )
        return attrs


class DailyCollectionSerializer(serializers.Serializer):
    date = serializers.DateField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()


class CollectionReportSerializer(serializers.Serializer):
    start_date = serializers.DateField(allow_null=True)
    end_date = serializers.DateField(allow_null=True)
    days = DailyCollectionSerializer(many=True)
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_count = serializers.IntegerField()

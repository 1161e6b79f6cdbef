import decimal
import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ReconciliationRun",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "started_at",
                    models.DateTimeField(help_text="When this reconciliation run started"),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When this reconciliation run completed (or failed)",
                        null=True,
                    ),
                ),
                (
                    "auto_dispute_after_hours",
                    models.PositiveIntegerField(
                        help_text="Age after which in-flight attempts were escalated"
                    ),
                ),
                ("attempts_checked", models.PositiveIntegerField(default=0)),
                ("healed", models.PositiveIntegerField(default=0)),
                ("escalated", models.PositiveIntegerField(default=0)),
                ("still_pending", models.PositiveIntegerField(default=0)),
                ("errors", models.PositiveIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="running",
                        help_text="Current status of this reconciliation run",
                        max_length=20,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, help_text="Error message if the run failed"),
                ),
            ],
            options={
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "started_at"],
                        name="recon_run_status_started_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("prefix", models.CharField(max_length=20)),
                ("year", models.PositiveIntegerField()),
                ("last_value", models.PositiveIntegerField(default=0)),
                (
                    "tenant",
                    models.ForeignKey(
                        help_text="School that owns this record",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Document sequence",
                "verbose_name_plural": "Document sequences",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "prefix", "year"),
                        name="document_sequence_unique_per_tenant_year",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="FeeInvoice",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "invoice_number",
                    models.CharField(
                        help_text="Invoice number, unique within the school", max_length=32
                    ),
                ),
                (
                    "billing_period_label",
                    models.CharField(
                        blank=True,
                        help_text="Billing period shown to the student",
                        max_length=100,
                    ),
                ),
                (
                    "total_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Fee amount before late fees",
                        max_digits=12,
                    ),
                ),
                (
                    "late_fee_applied",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Late fee added to the invoice",
                        max_digits=12,
                    ),
                ),
                (
                    "paid_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Money received against this invoice",
                        max_digits=12,
                    ),
                ),
                (
                    "balance_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        help_text="Outstanding balance (derived)",
                        max_digits=12,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("partial", "Partially Paid"),
                            ("paid", "Paid"),
                            ("overdue", "Overdue"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Derived from amounts and due date; cancelled is explicit",
                        max_length=20,
                    ),
                ),
                (
                    "issued_date",
                    models.DateField(
                        default=django.utils.timezone.localdate,
                        help_text="Date the invoice was issued",
                    ),
                ),
                (
                    "due_date",
                    models.DateField(help_text="Date after which the invoice is overdue"),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True, help_text="When the invoice was cancelled", null=True
                    ),
                ),
                ("remarks", models.TextField(blank=True)),
                (
                    "generated_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Staff member who generated the invoice",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="generated_invoices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        help_text="Student billed by this invoice",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="fee_invoices",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        help_text="School that owns this record",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fee invoice",
                "verbose_name_plural": "Fee invoices",
                "ordering": ["-issued_date", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["tenant", "status"], name="fee_invoice_tenant_status_idx"
                    ),
                    models.Index(
                        fields=["tenant", "student"], name="fee_invoice_tenant_student_idx"
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "invoice_number"),
                        name="fee_invoice_number_unique_per_tenant",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gte", 0)),
                        name="fee_invoice_total_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("paid_amount__gte", 0)),
                        name="fee_invoice_paid_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentAttempt",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount sent to the gateway",
                        max_digits=12,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Unique key generated for this attempt",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "gateway_ref_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Gateway transaction reference",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("initiated", "Initiated"),
                            ("processing", "Processing"),
                            ("pending", "Pending"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("disputed", "Disputed"),
                        ],
                        db_index=True,
                        default="initiated",
                        help_text="Current state of the attempt (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "trigger_source",
                    models.CharField(
                        choices=[
                            ("student_portal", "Student Portal"),
                            ("background_job", "Background Job"),
                            ("admin_manual", "Admin Manual"),
                            ("api_retry", "API Retry"),
                            ("gateway_callback", "Gateway Callback"),
                        ],
                        default="student_portal",
                        help_text="What created this attempt",
                        max_length=30,
                    ),
                ),
                (
                    "gateway_response",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Last raw response received from the gateway",
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True, help_text="Reason the attempt failed", null=True
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        help_text="Invoice being paid",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_attempts",
                        to="fees.feeinvoice",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        help_text="Student making the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_attempts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        help_text="School that owns this record",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment attempt",
                "verbose_name_plural": "Payment attempts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["tenant", "status", "created_at"],
                        name="pay_attempt_tenant_status_idx",
                    ),
                    models.Index(
                        fields=["invoice", "status"], name="pay_attempt_invoice_status_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_attempt_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentAuditLog",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "previous_status",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("initiated", "Initiated"),
                            ("processing", "Processing"),
                            ("pending", "Pending"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("disputed", "Disputed"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "new_status",
                    models.CharField(
                        choices=[
                            ("initiated", "Initiated"),
                            ("processing", "Processing"),
                            ("pending", "Pending"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("disputed", "Disputed"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "trigger_source",
                    models.CharField(
                        choices=[
                            ("student_portal", "Student Portal"),
                            ("background_job", "Background Job"),
                            ("admin_manual", "Admin Manual"),
                            ("api_retry", "API Retry"),
                            ("gateway_callback", "Gateway Callback"),
                        ],
                        max_length=30,
                    ),
                ),
                ("note", models.TextField(blank=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment_attempt",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_logs",
                        to="fees.paymentattempt",
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        help_text="School that owns this record",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment audit log",
                "verbose_name_plural": "Payment audit logs",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["payment_attempt", "created_at"],
                        name="audit_log_attempt_created_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentDispute",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "transaction_reference",
                    models.CharField(
                        db_index=True,
                        help_text="Transaction reference quoted by the student",
                        max_length=255,
                    ),
                ),
                (
                    "bank_reference_number",
                    models.CharField(
                        blank=True,
                        help_text="Bank reference number for offline transfers",
                        max_length=100,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount the student claims to have paid",
                        max_digits=12,
                    ),
                ),
                (
                    "student_note",
                    models.TextField(help_text="Student's description of the problem"),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("open", "Open"),
                            ("under_review", "Under Review"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="open",
                        help_text="Current state of the dispute (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "admin_note",
                    models.TextField(
                        blank=True, help_text="Note recorded with the admin decision"
                    ),
                ),
                (
                    "resolution_action",
                    models.CharField(
                        blank=True,
                        choices=[("APPROVE", "Approve"), ("REJECT", "Reject")],
                        help_text="Decision taken on the dispute",
                        max_length=10,
                    ),
                ),
                (
                    "resolved_at",
                    models.DateTimeField(
                        blank=True, help_text="When the dispute was resolved", null=True
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        help_text="Invoice being disputed",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disputes",
                        to="fees.feeinvoice",
                    ),
                ),
                (
                    "payment_attempt",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payment attempt the dispute refers to",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disputes",
                        to="fees.paymentattempt",
                    ),
                ),
                (
                    "resolved_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Admin who resolved the dispute",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="resolved_disputes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        help_text="Student who filed the dispute",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_disputes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        help_text="School that owns this record",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment dispute",
                "verbose_name_plural": "Payment disputes",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["tenant", "status"], name="dispute_tenant_status_idx"),
                    models.Index(
                        fields=["tenant", "student"], name="dispute_tenant_student_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_dispute_amount_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ("open", "under_review"))),
                        fields=("invoice",),
                        name="payment_dispute_one_active_per_invoice",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Receipt",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("receipt_number", models.CharField(max_length=32)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("issued_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receipts",
                        to="fees.feeinvoice",
                    ),
                ),
                (
                    "payment_attempt",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receipt",
                        to="fees.paymentattempt",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="fee_receipts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        help_text="School that owns this record",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="tenants.tenant",
                    ),
                ),
            ],
            options={
                "ordering": ["-issued_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "receipt_number"),
                        name="receipt_number_unique_per_tenant",
                    ),
                ],
            },
        ),
    ]

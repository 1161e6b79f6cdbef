"""
ViewSets for the school fees API.

This module provides the REST endpoints of the fees app:
- FeeInvoiceViewSet: Invoice listing, generation, cancellation and payment
- PaymentAttemptViewSet: Attempt history, status refresh and stuck payments
- PaymentDisputeViewSet: Dispute submission, admin overview, review and resolution
- ReceiptViewSet: Receipts issued for credited payments
- CollectionReportView: Daily collection totals

URL Structure:
    /api/v1/fees/invoices/                    GET, POST
    /api/v1/fees/invoices/{id}/               GET
    /api/v1/fees/invoices/{id}/cancel/        POST
    /api/v1/fees/invoices/{id}/pay/           POST
    /api/v1/fees/payments/                    GET
    /api/v1/fees/payments/stuck/              GET
    /api/v1/fees/payments/{id}/               GET
    /api/v1/fees/payments/{id}/status/        POST
    /api/v1/fees/payments/{id}/audit-log/     GET
    /api/v1/fees/disputes/                    GET, POST
    /api/v1/fees/disputes/{id}/               GET
    /api/v1/fees/disputes/{id}/review/        POST
    /api/v1/fees/disputes/{id}/resolve/       POST
    /api/v1/fees/receipts/                    GET
    /api/v1/fees/receipts/{id}/               GET
    /api/v1/fees/reports/collection/          GET

Every queryset is narrowed to the caller's school and, for students, to
their own rows, so foreign objects answer 404. Business rules live in the
services; failures come back as ServiceResult and are rendered with their
own status code.
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.models import User
from authentication.permissions import (
    HasActiveTenant,
    IsFinanceStaff,
    IsSchoolAdmin,
    IsStudent,
)
from core.services import ServiceResult
from fees.feed import admin_overview
from fees.models import FeeInvoice, PaymentAttempt, PaymentDispute, Receipt
from fees.serializers import (
    AdminDisputeOverviewSerializer,
    CollectionReportQuerySerializer,
    CollectionReportSerializer,
    DisputeCreateSerializer,
    DisputeResolutionSerializer,
    DisputeResolveSerializer,
    FeeInvoiceCreateSerializer,
    FeeInvoiceSerializer,
    PaymentAttemptSerializer,
    PaymentAuditLogSerializer,
    PaymentDisputeSerializer,
    PaymentInitiationSerializer,
    ReceiptSerializer,
)
from fees.services import (
    CollectionReportService,
    DisputeService,
    InvoiceService,
    PaymentService,
    StuckPaymentDetector,
)
from fees.state_machines import InvoiceStatus

TENANT_PERMISSIONS = [IsAuthenticated, HasActiveTenant]

# Non-UUID ids fall through the router and answer 404
UUID_LOOKUP_REGEX = "[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"


def failure_response(result: ServiceResult) -> Response:
    """Render a failed ServiceResult with its own HTTP status."""
    return Response(result.to_response(), status=result.status_code)


# =============================================================================
# Invoices
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_invoices",
        summary="List invoices",
        parameters=[
            OpenApiParameter(
                name="status",
                type=OpenApiTypes.STR,
                enum=InvoiceStatus.values,
                description="Only invoices in this status",
            ),
        ],
        tags=["Fees - Invoices"],
    ),
    retrieve=extend_schema(
        operation_id="get_invoice",
        summary="Get invoice",
        tags=["Fees - Invoices"],
    ),
)
class FeeInvoiceViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Fee invoices of the caller's school.

    list:
        Students see their own invoices, finance staff see the whole school.

    create:
        Generate an invoice for a student (finance staff).

    cancel:
        Cancel an invoice that has received no money (finance staff).

    pay:
        Start a gateway payment for the outstanding balance (student).
    """

    serializer_class = FeeInvoiceSerializer
    lookup_value_regex = UUID_LOOKUP_REGEX
    permission_classes = TENANT_PERMISSIONS

    def get_permissions(self):
        if self.action in ("create", "cancel"):
            return [permission() for permission in TENANT_PERMISSIONS + [IsFinanceStaff]]
        if self.action == "pay":
            return [permission() for permission in TENANT_PERMISSIONS + [IsStudent]]
        return super().get_permissions()

    def get_queryset(self):
        queryset = FeeInvoice.objects.visible_to(self.request.user).select_related("student")
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset.newest()

    @extend_schema(
        operation_id="create_invoice",
        summary="Generate invoice",
        request=FeeInvoiceCreateSerializer,
        responses={
            201: FeeInvoiceSerializer,
            400: OpenApiResponse(description="Validation error"),
        },
        tags=["Fees - Invoices"],
    )
    def create(self, request):
        serializer = FeeInvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        student = (
            User.objects.for_tenant(request.user.tenant)
            .filter(pk=data["student_id"])
            .first()
        )
        if student is None:
            return failure_response(
                ServiceResult.failure(
                    "Unknown student",
                    error_code="VALIDATION_ERROR",
                    errors={"student_id": ["No student with this id in your school."]},
                )
            )

        result = InvoiceService.create_invoice(
            tenant=request.user.tenant,
            student=student,
            total_amount=data["total_amount"],
            due_date=data["due_date"],
            generated_by=request.user,
            billing_period_label=data["billing_period_label"],
            late_fee_applied=data["late_fee_applied"],
            remarks=data["remarks"],
            issued_date=data.get("issued_date"),
        )
        if not result.success:
            return failure_response(result)

        return Response(FeeInvoiceSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="cancel_invoice",
        summary="Cancel invoice",
        request=None,
        responses={
            200: FeeInvoiceSerializer,
            404: OpenApiResponse(description="Invoice not found"),
            409: OpenApiResponse(description="Invoice has payments or is already cancelled"),
        },
        tags=["Fees - Invoices"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        result = InvoiceService.cancel_invoice(request.user, pk)
        if not result.success:
            return failure_response(result)
        return Response(FeeInvoiceSerializer(result.data).data)

    @extend_schema(
        operation_id="pay_invoice",
        summary="Pay invoice",
        description="Create a payment attempt for the outstanding balance and "
        "return the gateway checkout URL.",
        request=None,
        responses={
            201: PaymentInitiationSerializer,
            404: OpenApiResponse(description="Invoice not found"),
            409: OpenApiResponse(description="Invoice paid, cancelled or payment in progress"),
            502: OpenApiResponse(description="Gateway refused the payment"),
        },
        tags=["Fees - Invoices"],
    )
    @action(detail=True, methods=["post"])
    def pay(self, request, pk=None):
        result = PaymentService.initiate_payment(request.user, pk)
        if not result.success:
            return failure_response(result)
        return Response(
            PaymentInitiationSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Payment Attempts
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_payment_attempts",
        summary="List payment attempts",
        tags=["Fees - Payments"],
    ),
    retrieve=extend_schema(
        operation_id="get_payment_attempt",
        summary="Get payment attempt",
        tags=["Fees - Payments"],
    ),
)
class PaymentAttemptViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Payment attempts of the caller's school.

    stuck:
        Attempts processing for longer than the stuck threshold (finance staff).

    payment_status:
        Ask the gateway for the latest status of an active attempt.
    """

    serializer_class = PaymentAttemptSerializer
    lookup_value_regex = UUID_LOOKUP_REGEX
    permission_classes = TENANT_PERMISSIONS

    def get_permissions(self):
        if self.action in ("stuck", "audit_log"):
            return [permission() for permission in TENANT_PERMISSIONS + [IsFinanceStaff]]
        return super().get_permissions()

    def get_queryset(self):
        return (
            PaymentAttempt.objects.visible_to(self.request.user)
            .select_related("invoice", "student")
            .newest()
        )

    @extend_schema(
        operation_id="list_stuck_payments",
        summary="List stuck payments",
        parameters=[
            OpenApiParameter(
                name="minutes",
                type=OpenApiTypes.INT,
                description="Override the stuck threshold in minutes",
            ),
        ],
        responses={200: PaymentAttemptSerializer(many=True)},
        tags=["Fees - Payments"],
    )
    @action(detail=False, methods=["get"])
    def stuck(self, request):
        threshold = None
        minutes = request.query_params.get("minutes")
        if minutes:
            try:
                threshold = StuckPaymentDetector.threshold_from_minutes(minutes)
            except ValueError:
                return Response(
                    {
                        "error": "minutes must be an integer between 1 and "
                        f"{StuckPaymentDetector.MAX_THRESHOLD_MINUTES}"
                    },
                    status=status.HTTP_400_BAD_REQUEST,
                )

        attempts = StuckPaymentDetector.find_stuck_attempts(
            request.user.tenant, threshold=threshold
        )
        return Response(PaymentAttemptSerializer(attempts, many=True).data)

    @extend_schema(
        operation_id="refresh_payment_status",
        summary="Refresh payment status",
        request=None,
        responses={
            200: PaymentAttemptSerializer,
            404: OpenApiResponse(description="Payment attempt not found"),
            502: OpenApiResponse(description="Gateway unavailable"),
        },
        tags=["Fees - Payments"],
    )
    @action(detail=True, methods=["post"], url_path="status")
    def payment_status(self, request, pk=None):
        result = PaymentService.check_status(request.user, pk)
        if not result.success:
            return failure_response(result)
        return Response(PaymentAttemptSerializer(result.data).data)

    @extend_schema(
        operation_id="get_payment_audit_log",
        summary="Get payment audit log",
        responses={200: PaymentAuditLogSerializer(many=True)},
        tags=["Fees - Payments"],
    )
    @action(detail=True, methods=["get"], url_path="audit-log")
    def audit_log(self, request, pk=None):
        attempt = self.get_object()
        return Response(PaymentAuditLogSerializer(attempt.audit_logs.all(), many=True).data)


# =============================================================================
# Disputes
# =============================================================================


@extend_schema_view(
    retrieve=extend_schema(
        operation_id="get_dispute",
        summary="Get dispute",
        tags=["Fees - Disputes"],
    ),
)
class PaymentDisputeViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Payment disputes.

    list:
        Finance staff get the admin overview of open disputes and stuck
        payments; students get their own disputes.

    create:
        Raise a dispute against one of the student's unpaid invoices.

    review:
        Move an open dispute to UNDER_REVIEW (school admin).

    resolve:
        Approve or reject a dispute (school admin).
    """

    serializer_class = PaymentDisputeSerializer
    lookup_value_regex = UUID_LOOKUP_REGEX
    permission_classes = TENANT_PERMISSIONS

    def get_permissions(self):
        if self.action == "create":
            return [permission() for permission in TENANT_PERMISSIONS + [IsStudent]]
        if self.action in ("review", "resolve"):
            return [permission() for permission in TENANT_PERMISSIONS + [IsSchoolAdmin]]
        return super().get_permissions()

    def get_queryset(self):
        return (
            PaymentDispute.objects.visible_to(self.request.user)
            .select_related("student", "invoice")
            .newest()
        )

    @extend_schema(
        operation_id="list_disputes",
        summary="List disputes",
        responses={
            200: OpenApiResponse(
                description="AdminDisputeOverview for finance staff, "
                "a paginated list of PaymentDispute for students",
            ),
        },
        tags=["Fees - Disputes"],
    )
    def list(self, request, *args, **kwargs):
        if request.user.is_finance_staff:
            overview = admin_overview(request.user.tenant)
            return Response(AdminDisputeOverviewSerializer(overview).data)
        return super().list(request, *args, **kwargs)

    @extend_schema(
        operation_id="create_dispute",
        summary="Raise dispute",
        request=DisputeCreateSerializer,
        responses={
            201: PaymentDisputeSerializer,
            404: OpenApiResponse(description="Invoice or payment attempt not found"),
            409: OpenApiResponse(description="Invoice paid or dispute already open"),
        },
        tags=["Fees - Disputes"],
    )
    def create(self, request):
        serializer = DisputeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = DisputeService.submit_dispute(
            student=request.user,
            invoice_id=data["invoice_id"],
            transaction_reference=data["transaction_reference"],
            amount=data["amount"],
            student_note=data["student_note"],
            payment_attempt_id=data.get("payment_attempt_id"),
            bank_reference_number=data["bank_reference_number"],
        )
        if not result.success:
            return failure_response(result)

        return Response(
            PaymentDisputeSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        operation_id="review_dispute",
        summary="Start reviewing dispute",
        request=None,
        responses={
            200: PaymentDisputeSerializer,
            404: OpenApiResponse(description="Dispute not found"),
            409: OpenApiResponse(description="Dispute already resolved"),
        },
        tags=["Fees - Disputes"],
    )
    @action(detail=True, methods=["post"])
    def review(self, request, pk=None):
        result = DisputeService.start_review(admin=request.user, dispute_id=pk)
        if not result.success:
            return failure_response(result)
        return Response(PaymentDisputeSerializer(result.data).data)

    @extend_schema(
        operation_id="resolve_dispute",
        summary="Resolve dispute",
        request=DisputeResolveSerializer,
        responses={
            200: DisputeResolutionSerializer,
            404: OpenApiResponse(description="Dispute not found"),
            409: OpenApiResponse(description="Already resolved, stale or mismatched"),
        },
        tags=["Fees - Disputes"],
    )
    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        serializer = DisputeResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DisputeService.resolve_dispute(
            admin=request.user,
            dispute_id=pk,
            action=serializer.validated_data["action"],
            note=serializer.validated_data["note"],
            expected_version=serializer.validated_data.get("version"),
        )
        if not result.success:
            return failure_response(result)
        return Response(DisputeResolutionSerializer(result.data).data)


# =============================================================================
# Receipts & Reports
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_receipts",
        summary="List receipts",
        tags=["Fees - Receipts"],
    ),
    retrieve=extend_schema(
        operation_id="get_receipt",
        summary="Get receipt",
        tags=["Fees - Receipts"],
    ),
)
class ReceiptViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ReceiptSerializer
    lookup_value_regex = UUID_LOOKUP_REGEX
    permission_classes = TENANT_PERMISSIONS

    def get_queryset(self):
        return Receipt.objects.visible_to(self.request.user).select_related("invoice").newest()


class CollectionReportView(APIView):
    """Daily collection totals of the caller's school."""

    permission_classes = TENANT_PERMISSIONS + [IsFinanceStaff]

    @extend_schema(
        operation_id="get_collection_report",
        summary="Daily collection report",
        parameters=[CollectionReportQuerySerializer],
        responses={200: CollectionReportSerializer},
        tags=["Fees - Reports"],
    )
    def get(self, request):
        query = CollectionReportQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        report = CollectionReportService.daily_collection(
            request.user.tenant,
            start_date=query.validated_data.get("start_date"),
            end_date=query.validated_data.get("end_date"),
        )
        return Response(CollectionReportSerializer(report).data)

"""
Payment gateway callback endpoint.

The gateway posts a signed status update whenever a transaction settles.
The view:
1. Verifies the signature and decodes the body via the configured gateway
2. Finds the payment attempt by its gateway reference
3. Applies the status synchronously (same path as reconciliation)
4. Returns the outcome as JSON

Applying a status is idempotent: only PROCESSING and PENDING attempts are
updated, so the gateway retrying a delivered callback changes nothing.

Usage:
    # In urls.py
    from fees.webhooks import gateway_webhook

    urlpatterns = [
        path("webhooks/gateway/", gateway_webhook, name="gateway-webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.exceptions import BaseApplicationError
from fees.exceptions import WebhookSignatureError
from fees.models import PaymentAttempt
from fees.services import PaymentService
from fees.state_machines import TriggerSource

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Gateway-Signature"


@csrf_exempt
@require_POST
def gateway_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive a gateway status callback.

    Returns:
        JsonResponse with status:
        - 200: Callback applied, or ignored for an unknown reference
        - 400: Invalid signature or payload
        - 4xx/5xx: Domain error while applying the status
    """
    signature = request.headers.get(SIGNATURE_HEADER, "")

    try:
        status_result = PaymentService.get_gateway().parse_webhook(request.body, signature)
    except WebhookSignatureError as e:
        logger.warning("Gateway callback signature verification failed")
        return JsonResponse(e.to_dict(), status=e.status_code)
    except BaseApplicationError as e:
        logger.warning(
            "Gateway callback rejected",
            extra={"error_code": e.error_code, "error": e.message},
        )
        return JsonResponse(e.to_dict(), status=e.status_code)

    attempt_id = (
        PaymentAttempt.objects.filter(gateway_ref_id=status_result.gateway_ref_id)
        .values_list("pk", flat=True)
        .first()
    )
    if attempt_id is None:
        # Acknowledge so the gateway stops retrying a reference we never issued
        logger.warning(
            "Gateway callback for unknown reference",
            extra={"gateway_ref_id": status_result.gateway_ref_id},
        )
        return JsonResponse({"received": True, "action": "ignored"})

    try:
        update = PaymentService.apply_gateway_status(
            attempt_id,
            status_result,
            trigger_source=TriggerSource.GATEWAY_CALLBACK,
        )
    except BaseApplicationError as e:
        logger.error(
            "Failed to apply gateway callback",
            extra={
                "attempt_id": str(attempt_id),
                "gateway_ref_id": status_result.gateway_ref_id,
                "error_code": e.error_code,
            },
        )
        return JsonResponse(e.to_dict(), status=e.status_code)

    logger.info(
        "Gateway callback applied",
        extra={
            "attempt_id": str(attempt_id),
            "gateway_status": status_result.status,
            "action": update.action,
        },
    )
    return JsonResponse(
        {
            "received": True,
            "action": update.action,
            "attempt_id": str(attempt_id),
            "status": update.attempt.status,
        }
    )

"""Webhook API routes for external service integrations."""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from src.services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/stripe",
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhooks",
    description="Receives and processes Stripe webhook events. Requires valid signature.",
)
async def stripe_webhook(request: Request, background_tasks: BackgroundTasks) -> dict[str, str]:
    """Handle Stripe webhook events.

    The Stripe signature is verified before processing.

    Handles:
    - payment_intent.succeeded: marks a still-pending order paid and queues
      the confirmation emails
    - payment_intent.payment_failed: cancels a still-pending order and
      restores its stock

    Args:
        request: FastAPI request object for reading raw body and headers.
        background_tasks: Used to send order emails after the response.

    Returns:
        dict: Acknowledgment message.

    Raises:
        HTTPException: 400 if signature is invalid.
    """
    # Get raw body for signature verification
    payload = await request.body()

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.error("Missing Stripe-Signature header in webhook request")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    logger.debug("Payload size: %d bytes", len(payload))

    service = CheckoutService()

    try:
        event = service.verify_webhook_signature(payload, sig_header)
    except ValueError as e:
        logger.error("Invalid webhook signature: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e

    event_type = event.get("type", "")
    logger.info("Processing Stripe webhook event: %s", event_type)

    if event_type == "payment_intent.succeeded":
        result = await service.handle_payment_succeeded(event)
        if result:
            background_tasks.add_task(service.send_order_notifications, result["order_id"])
        logger.info("Processed payment_intent.succeeded")

    elif event_type == "payment_intent.payment_failed":
        await service.handle_payment_failed(event)
        logger.info("Processed payment_intent.payment_failed")

    else:
        # Log unhandled events but return 200 to acknowledge receipt
        logger.debug("Unhandled webhook event type: %s", event_type)

    # Always return 200 OK to acknowledge receipt (idempotent)
    return {"status": "received"}

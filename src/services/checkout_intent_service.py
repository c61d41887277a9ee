"""Persisted checkout intent log.

Every checkout attempt writes one ``checkout_intents`` row and moves it
through ``started -> order_created -> payment_pending -> succeeded`` or
``failed -> compensated``. Rows left open are picked up by the
reconciliation job.
"""

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from src.core.supabase import get_supabase_client
from src.models.checkout_intent import INTENT_TRANSITIONS, OPEN_INTENT_STATES, CheckoutIntent

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def scoped_idempotency_key(key: str, owner: str) -> str:
    """Namespace a client-chosen idempotency key to the buyer that sent it.

    ``owner`` is ``customer:<id>`` or ``cart:<session>``; the stored value is
    a digest so cart session tokens never reach the database.
    """
    return hashlib.sha256(f"{owner}:{key}".encode()).hexdigest()


class IntentTransitionError(Exception):
    """Raised when an intent cannot move to the requested state."""


class CheckoutIntentService:
    """Service for the checkout intent log."""

    def __init__(self, client: Client | None = None) -> None:
        """Initialize checkout intent service with Supabase client."""
        self.client = client or get_supabase_client()

    async def get_by_idempotency_key(self, idempotency_key: str) -> CheckoutIntent | None:
        """Intent for an already scoped key; see ``scoped_idempotency_key``."""
        response = (
            self.client.table("checkout_intents")
            .select("*")
            .eq("idempotency_key", idempotency_key)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_by_order(self, order_id: UUID | str) -> CheckoutIntent | None:
        """Most recent intent for an order."""
        response = (
            self.client.table("checkout_intents")
            .select("*")
            .eq("order_id", str(order_id))
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def start(
        self,
        provider: str,
        customer_id: UUID | str | None = None,
        idempotency_key: str | None = None,
    ) -> tuple[CheckoutIntent, bool]:
        """Record a new checkout attempt.

        If an intent with the same idempotency key exists it is returned
        instead, so a retried submission does not start a second checkout.

        Returns:
            tuple: (intent, created).
        """
        if idempotency_key:
            existing = await self.get_by_idempotency_key(idempotency_key)
            if existing:
                return existing, False

        row = {
            "provider": provider,
            "state": "started",
            "customer_id": str(customer_id) if customer_id else None,
            "idempotency_key": idempotency_key,
        }
        try:
            response = self.client.table("checkout_intents").insert(row).execute()
        except PostgrestAPIError as e:
            # A concurrent request with the same key won the insert
            if e.code == UNIQUE_VIOLATION and idempotency_key:
                existing = await self.get_by_idempotency_key(idempotency_key)
                if existing:
                    return existing, False
            raise

        return response.data[0], True

    async def transition(self, intent: CheckoutIntent, state: str, **fields: Any) -> CheckoutIntent:
        """Move an intent to a new state.

        The update is conditional on the state the caller last saw, so two
        workers cannot both advance the same intent.

        Args:
            intent: The intent as last read.
            state: Target state.
            **fields: Extra columns to write (order_id, provider_reference,
                failure_reason, response).

        Returns:
            CheckoutIntent: The updated intent.

        Raises:
            IntentTransitionError: If the transition is not allowed or the
                intent changed underneath us.
        """
        current = intent["state"]
        if state not in INTENT_TRANSITIONS.get(current, frozenset()):
            raise IntentTransitionError(f"Cannot move checkout intent from {current} to {state}")

        update_data = {
            k: (str(v) if isinstance(v, UUID) else v) for k, v in fields.items()
        }
        update_data["state"] = state
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

        response = (
            self.client.table("checkout_intents")
            .update(update_data)
            .eq("id", str(intent["id"]))
            .eq("state", current)
            .execute()
        )
        if not response.data:
            raise IntentTransitionError(f"Checkout intent {intent['id']} is no longer {current}")

        logger.debug("Checkout intent %s: %s -> %s", intent["id"], current, state)
        return response.data[0]

    async def list_stale(self, older_than_seconds: int, limit: int = 100) -> list[CheckoutIntent]:
        """Open intents not updated within ``older_than_seconds``."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)
        response = (
            self.client.table("checkout_intents")
            .select("*")
            .in_("state", list(OPEN_INTENT_STATES))
            .lt("updated_at", cutoff.isoformat())
            .order("updated_at")
            .limit(limit)
            .execute()
        )
        return response.data or []

"""
Stripe REST client
Transfers to employees' connected accounts and the read-side listings used by
payment reconciliation. Amounts on the wire are integer cents.
"""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import httpx

from ..config import STRIPE_API_URL, STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class StripeError(Exception):
    """Stripe rejected a request or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def to_cents(amount: float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    return float(Decimal(cents) / 100)


class StripeService:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = STRIPE_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.api_key:
            raise StripeError("Stripe is not configured (STRIPE_SECRET_KEY missing)")
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=30.0,
            transport=self.transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(
                    method, path, params=params, data=data, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Stripe request {method} {path} failed: {e}")
            raise StripeError(f"Stripe request failed: {e}") from e

        if response.status_code >= 400:
            try:
                error = response.json().get("error", {})
            except ValueError:
                error = {}
            message = error.get("message") or response.text
            logger.error(f"❌ Stripe {method} {path} returned {response.status_code}: {message}")
            raise StripeError(message, status_code=response.status_code, code=error.get("code"))

        return response.json()

    async def _list_all(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Walk a Stripe list endpoint with starting_after until has_more is false"""
        results: list[dict[str, Any]] = []
        query = {**params, "limit": PAGE_SIZE}

        while True:
            page = await self._request("GET", path, params=query)
            data = page.get("data", [])
            results.extend(data)
            if not page.get("has_more") or not data:
                break
            query["starting_after"] = data[-1]["id"]

        return results

    async def create_transfer(
        self,
        amount: float,
        destination: str,
        description: str,
        metadata: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Move funds from the platform balance to a connected account

        Args:
            amount: Dollars, converted to cents
            destination: Connected account id (acct_...)
            description: Shown on the transfer
            metadata: Flattened into metadata[key] form fields
            idempotency_key: Sent as Idempotency-Key
        """
        data = {
            "amount": to_cents(amount),
            "currency": "usd",
            "destination": destination,
            "description": description,
        }
        for key, value in (metadata or {}).items():
            data[f"metadata[{key}]"] = str(value)

        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        transfer = await self._request("POST", "/transfers", data=data, headers=headers)
        logger.info(f"✅ Stripe transfer {transfer.get('id')} created: ${amount:.2f} -> {destination}")
        return transfer

    async def list_payment_intents(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        """Succeeded payment intents created in [start, end]"""
        intents = await self._list_all("/payment_intents", _created_range(start, end))
        return [pi for pi in intents if pi.get("status") == "succeeded"]

    async def list_transfers(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        """Transfers created in [start, end], reversed ones excluded"""
        transfers = await self._list_all("/transfers", _created_range(start, end))
        return [t for t in transfers if not t.get("reversed")]


def _created_range(start: datetime, end: datetime) -> dict[str, int]:
    # Naive datetimes are UTC throughout the app
    return {
        "created[gte]": int(_as_utc_timestamp(start)),
        "created[lte]": int(_as_utc_timestamp(end)),
    }


def _as_utc_timestamp(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def get_stripe_service() -> StripeService:
    """FastAPI dependency, overridden in tests"""
    return StripeService(STRIPE_SECRET_KEY)

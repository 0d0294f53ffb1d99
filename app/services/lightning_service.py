"""
Lightning payout provider
Sends sats to a Lightning address or BOLT11 invoice through LNbits
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from app.core.config import settings
from app.utils.lightning import generate_invoice_secret

logger = logging.getLogger(__name__)


@dataclass
class PayoutResult:
    """Outcome of a single payment attempt"""
    success: bool
    payment_hash: Optional[str] = None
    payment_preimage: Optional[str] = None
    error: Optional[str] = None

    @property
    def has_proof(self) -> bool:
        return bool(self.payment_hash and self.payment_preimage)


class LightningPayer(Protocol):
    """Anything that can pay a destination and report the outcome without raising"""

    async def pay(self, destination: str, amount_sats: int, memo: str) -> PayoutResult:
        ...


def is_lightning_address(destination: str) -> bool:
    """Check whether a destination is a user@domain Lightning address"""
    if not destination or destination.count("@") != 1:
        return False
    username, domain = destination.split("@")
    return bool(username) and "." in domain


class LNbitsPayer:
    """
    Pays through an LNbits wallet.

    Lightning addresses are resolved with LNURL-pay to obtain an invoice,
    anything else is assumed to be a BOLT11 invoice and paid directly.
    One attempt per call with a bounded timeout, no internal retry loop.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        admin_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.LNBITS_URL).rstrip("/")
        self.admin_key = admin_key or settings.LNBITS_ADMIN_KEY
        self.timeout = timeout if timeout is not None else settings.LIGHTNING_TIMEOUT_SECONDS
        self._transport = transport
        if not self.admin_key:
            raise ValueError("LNbits admin key is required. Set LNBITS_ADMIN_KEY in environment variables.")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _fetch_invoice(self, client: httpx.AsyncClient, lightning_address: str, amount_sats: int, memo: str) -> str:
        """Resolve a Lightning address to a BOLT11 invoice for the given amount"""
        username, domain = lightning_address.split("@")
        lnurl_response = await client.get(f"https://{domain}/.well-known/lnurlp/{username}")
        lnurl_response.raise_for_status()
        lnurl = lnurl_response.json()
        if not isinstance(lnurl, dict):
            raise ValueError(f"Lightning address {lightning_address} returned a malformed response")

        if lnurl.get("status") == "ERROR":
            raise ValueError(lnurl.get("reason") or f"Lightning address {lightning_address} rejected the request")

        callback = lnurl.get("callback")
        if not callback:
            raise ValueError(f"Lightning address {lightning_address} returned no callback")

        amount_msat = amount_sats * 1000
        min_sendable = int(lnurl.get("minSendable", 0))
        max_sendable = int(lnurl.get("maxSendable", amount_msat))
        if amount_msat < min_sendable or amount_msat > max_sendable:
            raise ValueError(
                f"Amount {amount_sats} sats is outside allowed range for {lightning_address}"
            )

        params = {"amount": amount_msat}
        if memo and int(lnurl.get("commentAllowed", 0)) >= len(memo):
            params["comment"] = memo

        invoice_response = await client.get(callback, params=params)
        invoice_response.raise_for_status()
        invoice = invoice_response.json()
        if not isinstance(invoice, dict):
            raise ValueError("Lightning address callback returned a malformed response")

        payment_request = invoice.get("pr")
        if not payment_request:
            raise ValueError(invoice.get("reason") or "Lightning address callback returned no invoice")
        return payment_request

    async def pay(self, destination: str, amount_sats: int, memo: str) -> PayoutResult:
        """
        Pay a Lightning address or invoice.

        Args:
            destination: user@domain Lightning address or BOLT11 invoice
            amount_sats: Amount to send
            memo: Description attached where the receiver allows it

        Returns:
            PayoutResult; transport and provider errors are reported, not raised
        """
        try:
            async with self._client() as client:
                if is_lightning_address(destination):
                    bolt11 = await self._fetch_invoice(client, destination, amount_sats, memo)
                else:
                    bolt11 = destination

                response = await client.post(
                    f"{self.base_url}/api/v1/payments",
                    json={"out": True, "bolt11": bolt11},
                    headers={"X-Api-Key": self.admin_key, "Content-Type": "application/json"}
                )
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError("Lightning provider returned a malformed response")

            return PayoutResult(
                success=True,
                payment_hash=data.get("payment_hash"),
                payment_preimage=data.get("payment_preimage") or data.get("preimage")
            )
        except httpx.TimeoutException:
            logger.error(f"Lightning payment to {destination} timed out after {self.timeout}s")
            return PayoutResult(success=False, error=f"Lightning provider timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            logger.error(f"Lightning payment to {destination} rejected: HTTP {e.response.status_code}")
            return PayoutResult(success=False, error=f"Lightning provider returned HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Lightning payment to {destination} failed ({amount_sats} sats): {e}")
            return PayoutResult(success=False, error=str(e) or "Payment failed")


class SimulatedPayer:
    """Development payer: every payment succeeds with a fresh hash/preimage pair"""

    async def pay(self, destination: str, amount_sats: int, memo: str) -> PayoutResult:
        logger.info(f"Simulating Lightning payout of {amount_sats} sats to {destination} ({memo})")
        preimage, payment_hash = generate_invoice_secret()
        return PayoutResult(success=True, payment_hash=payment_hash, payment_preimage=preimage)


def get_lightning_payer() -> LightningPayer:
    """Real LNbits payer when an admin key is configured, simulated payer otherwise"""
    if settings.LNBITS_ADMIN_KEY:
        return LNbitsPayer()
    logger.warning("LNBITS_ADMIN_KEY not set, Lightning payouts are simulated")
    return SimulatedPayer()

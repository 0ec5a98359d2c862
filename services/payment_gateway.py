import logging

import aiohttp

import config
from exceptions.payment import PaymentGatewayException

logger = logging.getLogger(__name__)


class PaymentGatewayClient:
    """
    Thin aiohttp client for the card / bank-transfer / wallet processor.

    Every call returns the decoded JSON body; transport errors and non-2xx
    responses raise PaymentGatewayException. Timeouts are enforced by the
    caller (PaymentService wraps calls in asyncio.wait_for).
    """

    def __init__(self, base_url: str | None = None, api_key: str | None = None):
        self.base_url = (base_url if base_url is not None else config.PAYMENT_GATEWAY_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.PAYMENT_GATEWAY_API_KEY

    async def fetch_api_request(self, method: str, path: str, payload: dict | None = None,
                                idempotency_key: str | None = None) -> dict:
        if not self.base_url:
            raise PaymentGatewayException("PAYMENT_GATEWAY_URL is not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        # The gateway replays the first response for a repeated key instead of charging again
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(headers=headers) as session:
                async with session.request(method, url, json=payload) as response:
                    if response.status not in range(200, 300):
                        body = await response.text()
                        logger.warning(f"Gateway {method} {path} returned {response.status}: {body[:200]}")
                        raise PaymentGatewayException(f"HTTP {response.status}", status_code=response.status)
                    return await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Gateway {method} {path} transport error: {e}")
            raise PaymentGatewayException(str(e)) from e

    async def create_or_confirm_charge(self, amount: float, currency: str, method_token: str,
                                       method: str = "card", idempotency_key: str | None = None) -> dict:
        """
        Create and confirm a charge.

        Args:
            amount: Amount in major currency units
            currency: ISO currency code
            method_token: Gateway handle for the payment instrument (pm_..., account token, wallet id)
            method: card, bank_transfer or wallet
            idempotency_key: One key per payment attempt, sent as the Idempotency-Key header

        Returns:
            Gateway body, at least {"id": ..., "status": ...}
        """
        return await self.fetch_api_request("POST", "/charges", {
            # Gateways take minor units
            "amount": int(round(amount * 100)),
            "currency": currency.lower(),
            "payment_method": method_token,
            "method": method,
            "confirm": True,
        }, idempotency_key=idempotency_key)

    async def refund(self, charge_id: str, amount: float, idempotency_key: str | None = None) -> dict:
        return await self.fetch_api_request("POST", "/refunds", {
            "charge": charge_id,
            "amount": int(round(amount * 100)),
        }, idempotency_key=idempotency_key)

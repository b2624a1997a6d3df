"""
HTTP payment provider adapter - Implements PaymentProvider protocol.

Queries the gateway's payment status endpoint with a bearer key. Every
call is bounded by a timeout; timeouts, transport errors and 5xx answers
raise UpstreamError so the caller fails closed.

A reference counts as paid when the response is 2xx and the body reports
status "success" or "00", or responseCode "00".
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from src.domain.exceptions import UpstreamError
from src.domain.models import PaymentOutcome

logger = logging.getLogger(__name__)

_SUCCESS_STATUSES = frozenset({"success", "00"})


class HttpPaymentProvider:
    """
    Implements PaymentProvider protocol via httpx.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, client: httpx.Client) -> None:
        """
        Args:
            client: httpx client configured with base_url, auth header
                and timeout (see build_client)
        """
        self._client = client

    def verify(self, reference: str) -> PaymentOutcome:
        try:
            response = self._client.get(f"/{quote(reference, safe='')}")
        except httpx.TimeoutException as e:
            logger.error("Payment provider timed out for %s", reference)
            raise UpstreamError("payment provider timed out") from e
        except httpx.HTTPError as e:
            logger.error("Payment provider unreachable for %s: %s", reference, e)
            raise UpstreamError("payment provider unreachable") from e

        if response.status_code >= 500:
            logger.error("Payment provider returned %s for %s", response.status_code, reference)
            raise UpstreamError(f"payment provider returned {response.status_code}")

        body = _json_body(response)
        success = response.is_success and _reports_success(body)
        if not success:
            logger.warning("Payment verification failed for %s: %s", reference, body)
        return PaymentOutcome(success=success, raw_response=body)


def build_client(base_url: str, secret_key: str, timeout_seconds: float) -> httpx.Client:
    """Create the provider client used by HttpPaymentProvider."""
    return httpx.Client(
        base_url=base_url.rstrip("/"),
        headers={
            "Authorization": f"Bearer {secret_key}",
            "Content-Type": "application/json",
        },
        timeout=timeout_seconds,
    )


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"body": response.text}
    return body if isinstance(body, dict) else {"body": body}


def _reports_success(body: dict[str, Any]) -> bool:
    return body.get("status") in _SUCCESS_STATUSES or body.get("responseCode") == "00"

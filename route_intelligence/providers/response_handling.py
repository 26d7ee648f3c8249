"""Shared HTTP response helpers for provider interactions."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..errors import (
    ProviderHTTPError,
    ProviderRateLimitedError,
    ProviderUnavailableError,
)

LOGGER = logging.getLogger(__name__)

__all__ = [
    "classify_response_status",
    "extract_error",
]


def classify_response_status(
    provider: str,
    response: requests.Response,
    context: str,
    *,
    attempt: int,
    backoff: float,
    can_retry: bool,
) -> Tuple[str, Optional[Exception]]:
    """Return action for a response status: ``ok``, ``retry`` or ``raise``."""

    status = response.status_code
    if status < 400:
        return "ok", None
    detail = extract_error(response)

    def with_detail(message: str) -> str:
        return f"{message} | {detail}" if detail else message

    if status == 429:
        if can_retry:
            LOGGER.warning(
                "%s rate limited (429) provider=%s attempt=%s; sleeping %.1fs",
                context,
                provider,
                attempt,
                backoff,
            )
            return "retry", None
        message = with_detail(f"{context} rate limited by {provider}")
        LOGGER.warning(message)
        return "raise", ProviderRateLimitedError(
            message, provider=provider, status=status
        )

    if status in (401, 403):
        message = with_detail(f"{context} rejected credentials for {provider}")
        LOGGER.warning(message)
        return "raise", ProviderUnavailableError(message, provider=provider)

    if 500 <= status < 600 and can_retry:
        message = with_detail(f"{context} server error {status} from {provider}")
        LOGGER.warning("%s; retrying in %.1fs", message, backoff)
        return "retry", None

    message = with_detail(f"{context} request failed (status {status}) for {provider}")
    LOGGER.error(message)
    return "raise", ProviderHTTPError(message, provider=provider, status=status)


def extract_error(resp: Optional[requests.Response]) -> Optional[str]:
    """Return a compact error string from a provider error payload, if any."""

    if resp is None:
        return None
    data = _safe_json(resp)
    if data is None:
        return _extract_error_text(resp)
    if not isinstance(data, dict):
        return None
    parts = _collect_error_parts(data)
    return " | ".join(parts) if parts else None


def _safe_json(resp: requests.Response) -> Optional[Any]:
    """Safely parse JSON; return None if parsing fails."""

    try:
        return resp.json()
    except ValueError as exc:  # pragma: no cover - logging path
        LOGGER.debug(
            "Failed to decode JSON from %s: %s", getattr(resp, "url", "?"), exc
        )
        return None


def _extract_error_text(resp: requests.Response) -> Optional[str]:
    """Best-effort plain-text extraction when JSON parsing fails."""

    text = getattr(resp, "text", "")
    if not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    return (trimmed[:297] + "...") if len(trimmed) > 300 else trimmed


def _collect_error_parts(data: Dict[str, Any]) -> List[str]:
    """Build error snippets from the error shapes the providers return.

    Valhalla sends ``error``/``error_code``, Mapbox ``message``/``code`` and
    OpenTopoData ``status``/``error``.
    """

    parts: List[str] = []
    for key in ("message", "error", "error_message"):
        value = data.get(key)
        if value and str(value) not in parts:
            parts.append(str(value))
    for key in ("code", "error_code"):
        value = data.get(key)
        if value is not None and str(value) not in parts:
            parts.append(f"code:{value}")
    status = data.get("status")
    if isinstance(status, str) and status.upper() != "OK":
        parts.append(f"status:{status}")
    return parts

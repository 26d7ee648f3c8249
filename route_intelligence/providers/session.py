"""HTTP session factory shared by every routing and elevation provider."""

from __future__ import annotations

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import HTTP_POOL_CONNECTIONS, HTTP_POOL_MAXSIZE

__all__ = ["create_default_session", "get_default_session"]


def _build_retry() -> Retry:
    # Only connection-level failures are retried here; status retries and
    # backoff are driven by ProviderClient so they respect the request budget.
    return Retry(
        total=1,
        connect=1,
        read=0,
        status=0,
        backoff_factor=0.2,
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
    )


def create_default_session() -> Session:
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=HTTP_POOL_CONNECTIONS,
        pool_maxsize=HTTP_POOL_MAXSIZE,
        max_retries=_build_retry(),
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "Accept-Encoding": "gzip, deflate",
            "Accept": "application/json",
            "User-Agent": "route-intelligence-engine",
        }
    )
    return session


_DEFAULT_SESSION: Session | None = None


def get_default_session() -> Session:
    """Return the shared pooled session, creating it on first use."""

    global _DEFAULT_SESSION
    if _DEFAULT_SESSION is None:
        _DEFAULT_SESSION = create_default_session()
    return _DEFAULT_SESSION

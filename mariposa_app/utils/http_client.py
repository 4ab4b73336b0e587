from __future__ import annotations

import requests
from requests.adapters import HTTPAdapter

_DEFAULT_POOL_CONNECTIONS = 20
_DEFAULT_POOL_MAXSIZE = 20
USER_AGENT = "mariposa-dashboard/1.0"


def create_http_session(
    *,
    pool_connections: int = _DEFAULT_POOL_CONNECTIONS,
    pool_maxsize: int = _DEFAULT_POOL_MAXSIZE,
) -> requests.Session:
    """Return a :class:`requests.Session` with a connection pool and JSON defaults.

    Retries are handled one level up (``tenacity`` in the API client), so the
    adapters are mounted with ``max_retries=0``.
    """

    session = requests.Session()
    for prefix in ("http://", "https://"):
        session.mount(
            prefix,
            HTTPAdapter(pool_connections=pool_connections, pool_maxsize=pool_maxsize, max_retries=0),
        )
    session.headers.update(
        {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
    )
    return session

#!/usr/bin/env python3
"""
Update Link Checker
Checks that a resolved update_link answers before it is published.
"""

import logging
import os
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = int(os.environ.get('XPI_LINK_TIMEOUT', '15'))  # seconds


def get_session(
    *,
    retries: int = 2,
    backoff_factor: float = 0.3,
    pool_connections: int = 2,
    pool_maxsize: int = 4,
) -> requests.Session:
    """Create an HTTP session with pooling and retries for transient errors.

    Args:
        retries: Total retry attempts for transient errors
        backoff_factor: Backoff factor for retry delays
        pool_connections: Connection pool size per host
        pool_maxsize: Max pooled connections

    Returns:
        Configured requests.Session
    """
    session = requests.Session()
    session.headers.update({
        'User-Agent': 'xpi-update-manifest',
        'Accept': '*/*',
    })

    retry = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=frozenset(['HEAD', 'GET']),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=retry,
    )
    session.mount('http://', adapter)
    session.mount('https://', adapter)

    return session


def check_update_link(url: str, session: Optional[requests.Session] = None,
                      timeout: int = DEFAULT_TIMEOUT) -> bool:
    """
    Check if an update link is reachable without downloading the archive

    A HEAD request is tried first; servers that reject HEAD get a one-byte
    ranged GET instead.

    Args:
        url: Link to check
        session: Optional session to reuse
        timeout: Per-request timeout in seconds

    Returns:
        True if the server answered 200 (or 206 for the ranged GET)
    """
    session = session or get_session()

    try:
        response = session.head(url, timeout=timeout, allow_redirects=True)
        if response.status_code == 200:
            return True
        logger.debug(f"HEAD {url} returned {response.status_code}")
    except requests.RequestException as e:
        logger.debug(f"HEAD {url} failed: {e}")

    try:
        response = session.get(url, headers={'Range': 'bytes=0-0'},
                               timeout=timeout, stream=True)
        try:
            return response.status_code in (200, 206)  # 206 = Partial Content
        finally:
            response.close()
    except requests.RequestException as e:
        logger.debug(f"GET {url} failed: {e}")
        return False

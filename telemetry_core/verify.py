"""Asynchronous verification of telemetry service credentials."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from telemetry_core.config import TelemetryConfig

logger = logging.getLogger("telemetry_core.verify")

try:
    import httpx

    WEB_SERVICE_AVAILABLE = True
except ImportError:
    logger.info("httpx not available. Install with: pip install httpx")
    WEB_SERVICE_AVAILABLE = False

# Shared worker; verification has no cancellation so a small pool is enough
_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="telemetry-verify")


def check_credentials(endpoint_url: str, username: str, token: str, timeout: float) -> bool:
    """Ask the verification endpoint whether the username and token are valid.

    Returns:
        bool: True if the service confirmed the username, False otherwise
    """
    if not endpoint_url:
        logger.warning("No verification endpoint configured")
        return False
    try:
        response = httpx.get(
            endpoint_url,
            headers={"x-username": username, "x-token": token},
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        logger.warning(f"Login verification request failed: {e}")
        return False

    if response.status_code != 200:
        logger.info(f"Login verification rejected with status {response.status_code}")
        return False
    try:
        body = response.json()
    except ValueError:
        logger.warning("Login verification returned invalid JSON")
        return False
    return isinstance(body, dict) and body.get("username") == username


def verify_login(
    username: str,
    token: str,
    func: Callable[[], None],
    config: Optional[TelemetryConfig] = None,
) -> Future:
    """Check credentials on a background thread.

    Args:
        username: Account name to verify
        token: Account token to verify
        func: Called exactly once on the worker thread when the check finishes
        config: Telemetry configuration, or None to load from environment

    Returns:
        A future resolving to True if the credentials were verified
    """
    config = config or TelemetryConfig.from_env()
    web_service = WEB_SERVICE_AVAILABLE

    def _run() -> bool:
        verified = False
        try:
            if web_service:
                verified = check_credentials(
                    config.verify_endpoint_url, username, token, config.verify_timeout
                )
        except Exception as e:
            logger.warning(f"Login verification failed: {e}")
        finally:
            try:
                func()
            except Exception as e:
                logger.warning(f"Login verification callback raised: {e}")
        return verified

    return _executor.submit(_run)

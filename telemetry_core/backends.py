"""Telemetry backends that consume visited fields.

A backend is chosen once per session: ``NullBackend`` discards everything,
``PostHogBackend`` buffers the fields and submits them when the session
completes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from telemetry_core import __version__
from telemetry_core.config import TelemetryConfig
from telemetry_core.fields import Field, FieldType
from telemetry_core.models import FieldRecord, SessionPayload

logger = logging.getLogger("telemetry_core.backends")

# Import the remote submission backend
try:
    from posthog import Posthog

    WEB_SERVICE_AVAILABLE = True
except ImportError:
    logger.info("PostHog not available. Install with: pip install posthog")
    WEB_SERVICE_AVAILABLE = False

SESSION_EVENT_NAME = "telemetry_session"

# Used when no telemetry id could be read; submissions never carry the username
ANONYMOUS_DISTINCT_ID = "anonymous"


class Backend(ABC):
    """Visitor over the supported field value kinds."""

    @abstractmethod
    def visit_boolean(self, field: Field) -> None:
        pass

    @abstractmethod
    def visit_integer(self, field: Field) -> None:
        pass

    @abstractmethod
    def visit_float(self, field: Field) -> None:
        pass

    @abstractmethod
    def visit_string(self, field: Field) -> None:
        pass

    @abstractmethod
    def visit_sequence(self, field: Field) -> None:
        pass

    @abstractmethod
    def complete(self) -> None:
        """Finish the session, submitting anything that was collected."""


class NullBackend(Backend):
    """Backend used when telemetry is disabled. Every call is a no-op."""

    def visit_boolean(self, field: Field) -> None:
        pass

    def visit_integer(self, field: Field) -> None:
        pass

    def visit_float(self, field: Field) -> None:
        pass

    def visit_string(self, field: Field) -> None:
        pass

    def visit_sequence(self, field: Field) -> None:
        pass

    def complete(self) -> None:
        pass


class PostHogBackend(Backend):
    """Buffers visited fields and submits them as one PostHog event."""

    def __init__(self, endpoint_url: str, username: str, token: str, client: Any = None):
        """Initialize the backend.

        Args:
            endpoint_url: PostHog host to submit to
            username: Account name for the service (kept out of submitted data)
            token: PostHog project API key
            client: Pre-built PostHog client (default: one is created lazily)
        """
        self.endpoint_url = endpoint_url
        self.username = username
        self.token = token
        self._client = client
        self.records: List[FieldRecord] = []
        self.telemetry_id = 0
        self.completed = False

    def _record(self, field: Field, value: Any) -> None:
        if field.category is FieldType.NONE and field.name == "TelemetryId":
            self.telemetry_id = int(value)
        self.records.append(
            FieldRecord(
                category=field.category.value,
                name=field.name,
                kind=field.kind.value,
                value=value,
            )
        )

    def visit_boolean(self, field: Field) -> None:
        self._record(field, bool(field.value))

    def visit_integer(self, field: Field) -> None:
        self._record(field, int(field.value))

    def visit_float(self, field: Field) -> None:
        self._record(field, float(field.value))

    def visit_string(self, field: Field) -> None:
        self._record(field, str(field.value))

    def visit_sequence(self, field: Field) -> None:
        self._record(field, list(field.value))

    def payload(self) -> SessionPayload:
        return SessionPayload(
            version=__version__,
            telemetry_id=self.telemetry_id,
            records=list(self.records),
        )

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = Posthog(self.token, host=self.endpoint_url)
        return self._client

    def complete(self) -> None:
        """Submit the buffered session. Errors are logged, never raised."""
        if self.completed:
            return
        self.completed = True

        payload = self.payload()
        distinct_id = str(payload.telemetry_id) if payload.telemetry_id else ANONYMOUS_DISTINCT_ID
        try:
            client = self._get_client()
            client.capture(
                distinct_id=distinct_id,
                event=SESSION_EVENT_NAME,
                properties={
                    **payload.properties(),
                    "records": [r.model_dump() for r in payload.records],
                },
            )
            client.flush()
            client.shutdown()
            logger.info(f"Submitted telemetry session with {len(payload.records)} fields")
        except Exception as e:
            logger.warning(f"Failed to submit telemetry session: {e}")


def create_backend(config: Optional[TelemetryConfig] = None) -> Backend:
    """Select the backend for a new session.

    Args:
        config: Telemetry configuration, or None to load from environment

    Returns:
        A PostHogBackend when remote telemetry is enabled and available,
        otherwise a NullBackend
    """
    config = config or TelemetryConfig.from_env()
    if WEB_SERVICE_AVAILABLE and config.remote_enabled():
        logger.debug(f"Using PostHog backend at {config.endpoint_url}")
        return PostHogBackend(config.endpoint_url, config.username, config.token)
    logger.debug("Using null telemetry backend")
    return NullBackend()

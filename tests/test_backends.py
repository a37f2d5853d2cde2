"""Tests for the telemetry backends."""

from unittest.mock import MagicMock, patch

import pytest

from telemetry_core.backends import (
    ANONYMOUS_DISTINCT_ID,
    SESSION_EVENT_NAME,
    NullBackend,
    PostHogBackend,
    create_backend,
)
from telemetry_core.config import TelemetryConfig
from telemetry_core.fields import FieldCollection, FieldType


@pytest.fixture
def collection():
    fields = FieldCollection()
    fields.add(FieldType.NONE, "TelemetryId", 1234)
    fields.add(FieldType.SESSION, "Init_Time", 1000)
    fields.add(FieldType.APP, "Git_IsDirty", True)
    fields.add(FieldType.USER_CONFIG, "Scale", 0.5)
    fields.add(FieldType.APP, "Git_Branch", "main")
    fields.add(FieldType.APP, "Tags", ["x", "y"])
    return fields


@pytest.fixture
def remote_config(tmp_path):
    return TelemetryConfig(
        enabled=True,
        endpoint_url="https://telemetry.example.com",
        username="alice",
        token="secret",
        config_dir=tmp_path,
    )


class TestNullBackend:
    """Tests for the discarding backend."""

    def test_no_side_effects(self, collection, tmp_path):
        """Test that the null backend touches nothing."""
        backend = NullBackend()
        with patch("telemetry_core.backends.Posthog") as mock_posthog:
            collection.accept(backend)
            backend.complete()
            backend.complete()

        mock_posthog.assert_not_called()
        assert list(tmp_path.iterdir()) == []
        assert vars(backend) == {}


class TestPostHogBackend:
    """Tests for the remote-submit backend."""

    def test_records_fields_in_order(self, collection):
        """Test that visited fields are buffered in insertion order."""
        backend = PostHogBackend("https://h", "alice", "token", client=MagicMock())
        collection.accept(backend)

        assert [(r.category, r.name, r.kind) for r in backend.records] == [
            ("None", "TelemetryId", "integer"),
            ("Session", "Init_Time", "integer"),
            ("App", "Git_IsDirty", "boolean"),
            ("UserConfig", "Scale", "float"),
            ("App", "Git_Branch", "string"),
            ("App", "Tags", "sequence"),
        ]
        assert backend.records[-1].value == ["x", "y"]
        assert backend.telemetry_id == 1234

    def test_complete_submits_session(self, collection):
        """Test submitting the buffered session."""
        client = MagicMock()
        backend = PostHogBackend("https://h", "alice", "token", client=client)
        collection.accept(backend)

        backend.complete()

        client.capture.assert_called_once()
        _, kwargs = client.capture.call_args
        assert kwargs["distinct_id"] == "1234"
        assert kwargs["event"] == SESSION_EVENT_NAME
        assert kwargs["properties"]["App/Git_Branch"] == "main"
        assert "username" not in kwargs["properties"]
        assert "alice" not in str(kwargs)
        assert len(kwargs["properties"]["records"]) == 6
        client.flush.assert_called_once()
        client.shutdown.assert_called_once()

    def test_complete_is_idempotent(self, collection):
        """Test that completing twice submits once."""
        client = MagicMock()
        backend = PostHogBackend("https://h", "alice", "token", client=client)
        collection.accept(backend)

        backend.complete()
        backend.complete()

        assert client.capture.call_count == 1

    def test_duplicate_names_keep_all_records(self):
        """Test that repeated names are all submitted."""
        backend = PostHogBackend("https://h", "alice", "token", client=MagicMock())
        fields = FieldCollection()
        fields.add(FieldType.APP, "BuildName", "a")
        fields.add(FieldType.APP, "BuildName", "b")
        fields.accept(backend)

        assert [r.value for r in backend.records] == ["a", "b"]
        assert backend.payload().properties()["App/BuildName"] == "b"

    def test_anonymous_id_without_telemetry_id(self):
        """Test the anonymous distinct id when no telemetry id was read."""
        client = MagicMock()
        backend = PostHogBackend("https://h", "alice", "token", client=client)
        backend.complete()

        _, kwargs = client.capture.call_args
        assert kwargs["distinct_id"] == ANONYMOUS_DISTINCT_ID
        assert "alice" not in str(kwargs)

    def test_complete_swallows_client_errors(self, collection, caplog):
        """Test that client errors are logged, not raised."""
        client = MagicMock()
        client.capture.side_effect = RuntimeError("network down")
        backend = PostHogBackend("https://h", "alice", "token", client=client)
        collection.accept(backend)

        backend.complete()

        assert "Failed to submit telemetry session" in caplog.text

    @patch("telemetry_core.backends.Posthog")
    def test_client_built_from_credentials(self, mock_posthog):
        """Test building the PostHog client from the credentials."""
        backend = PostHogBackend("https://h", "alice", "token")
        backend.complete()

        mock_posthog.assert_called_once_with("token", host="https://h")


class TestCreateBackend:
    """Tests for backend selection."""

    @patch("telemetry_core.backends.WEB_SERVICE_AVAILABLE", True)
    def test_enabled_with_credentials(self, remote_config):
        """Test selecting the PostHog backend."""
        backend = create_backend(remote_config)
        assert isinstance(backend, PostHogBackend)
        assert backend.endpoint_url == "https://telemetry.example.com"
        assert backend.username == "alice"
        assert backend.token == "secret"

    @patch("telemetry_core.backends.WEB_SERVICE_AVAILABLE", True)
    def test_disabled_ignores_other_settings(self, remote_config):
        """Test that disabled telemetry always gets the null backend."""
        remote_config.enabled = False
        assert isinstance(create_backend(remote_config), NullBackend)

    @patch("telemetry_core.backends.WEB_SERVICE_AVAILABLE", True)
    def test_missing_credentials(self, remote_config):
        """Test falling back to the null backend without a token."""
        remote_config.token = ""
        assert isinstance(create_backend(remote_config), NullBackend)

    @patch("telemetry_core.backends.WEB_SERVICE_AVAILABLE", False)
    def test_without_web_service(self, remote_config):
        """Test that a missing PostHog library means no remote backend."""
        assert isinstance(create_backend(remote_config), NullBackend)

"""Tests for structured logging."""

import json
import logging
from pathlib import Path

import pytest
import structlog

from repoplane.config.models import LoggingConfig, LogOutputConfig
from repoplane.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)


class TestRequestIdCorrelation:
    """Request ID context variable tests."""

    def setup_method(self) -> None:
        """Clear request ID before each test."""
        clear_request_id()

    def test_given_request_id_when_set_then_can_retrieve(self) -> None:
        """Request ID can be set and retrieved."""
        # When
        result = set_request_id("test-123")

        # Then
        assert result == "test-123"
        assert get_request_id() == "test-123"

    def test_given_no_id_when_set_then_generates_uuid(self) -> None:
        """Set generates UUID-based ID when none provided."""
        rid = set_request_id()

        assert len(rid) == 12  # uuid4().hex[:12]

    def test_given_set_id_when_clear_then_removes_id(self) -> None:
        """Clear removes the current request ID."""
        # Given
        set_request_id("to-clear")

        # When
        clear_request_id()

        # Then
        assert get_request_id() is None


class TestLoggingConfiguration:
    """Logging configuration tests."""

    def setup_method(self) -> None:
        """Reset structlog and stdlib logging before each test."""
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()
        clear_request_id()

    def teardown_method(self) -> None:
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        clear_request_id()

    def test_given_json_file_output_when_log_then_valid_json(self, tmp_path: Path) -> None:
        """JSON output carries event, fields, level and timestamp."""
        # Given
        log_file = tmp_path / "out.log"
        configure_logging(
            config=LoggingConfig(
                level="INFO",
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )

        # When
        get_logger("test").info("staged_change_written", path="src/a.ts")

        # Then
        data = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert data["event"] == "staged_change_written"
        assert data["path"] == "src/a.ts"
        assert data["level"] == "info"
        assert data["logger"] == "test"
        assert "timestamp" in data

    def test_given_request_id_when_log_then_included(self, tmp_path: Path) -> None:
        """The current request id is attached to every event."""
        # Given
        log_file = tmp_path / "out.log"
        configure_logging(
            config=LoggingConfig(
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )
        set_request_id("req-42")

        # When
        structlog.get_logger().info("access_denied", reason="unknown_token")

        # Then
        data = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert data["request_id"] == "req-42"

    def test_given_config_object_when_configure_then_outputs_follow_config(
        self, tmp_path: Path
    ) -> None:
        """Without a level override the config's level applies."""
        # Given
        log_file = tmp_path / "test.log"
        config = LoggingConfig(
            level="WARNING",
            outputs=[LogOutputConfig(format="json", destination=str(log_file))],
        )

        # When
        configure_logging(config=config)
        get_logger().info("info msg")
        get_logger().warning("warning msg")

        # Then
        content = log_file.read_text()
        assert "warning msg" in content
        assert "info msg" not in content

    def test_given_level_override_when_configure_then_lowers_every_output(
        self, tmp_path: Path
    ) -> None:
        """An explicit level (the CLI's --verbose) wins over config levels."""
        # Given
        log_file = tmp_path / "test.log"
        config = LoggingConfig(
            level="WARNING",
            outputs=[LogOutputConfig(format="json", destination=str(log_file), level="ERROR")],
        )

        # When
        configure_logging(config=config, level="DEBUG")
        get_logger().debug("debug msg")

        # Then
        assert "debug msg" in log_file.read_text()

    def test_given_raw_token_in_event_when_log_then_masked(self, tmp_path: Path) -> None:
        """Raw project tokens never reach an output."""
        # Given
        log_file = tmp_path / "out.log"
        configure_logging(
            config=LoggingConfig(
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )
        raw = "rpt_" + "A" * 32

        # When
        get_logger().info("token_created", note=f"issued {raw}", extra=[raw])

        # Then
        content = log_file.read_text()
        assert raw not in content
        data = json.loads(content.strip().splitlines()[-1])
        assert data["note"] == "issued rpt_***"
        assert data["extra"] == ["rpt_***"]

    def test_given_multi_output_config_when_configure_then_logs_to_all(
        self, tmp_path: Path
    ) -> None:
        """Multiple outputs receive logs according to their levels."""
        # Given
        debug_file = tmp_path / "debug.log"
        info_file = tmp_path / "info.log"
        config = LoggingConfig(
            level="DEBUG",
            outputs=[
                LogOutputConfig(format="json", destination=str(info_file), level="INFO"),
                LogOutputConfig(format="json", destination=str(debug_file)),
            ],
        )

        # When
        configure_logging(config=config)
        logger = get_logger()
        logger.debug("debug only")
        logger.info("info msg")

        # Then
        info_content = info_file.read_text()
        assert "info msg" in info_content
        assert "debug only" not in info_content

        debug_content = debug_file.read_text()
        assert "debug only" in debug_content
        assert "info msg" in debug_content

    def test_given_reconfigure_when_called_twice_then_single_handler(
        self, tmp_path: Path
    ) -> None:
        """Reconfiguring replaces handlers instead of stacking them."""
        config = LoggingConfig(
            outputs=[LogOutputConfig(format="json", destination=str(tmp_path / "a.log"))],
        )

        configure_logging(config=config)
        configure_logging(config=config)

        assert len(logging.getLogger().handlers) == 1

    def test_given_relative_file_destination_then_rejected(self) -> None:
        """File destinations must be absolute."""
        with pytest.raises(ValueError):
            LogOutputConfig(destination="relative/out.log")

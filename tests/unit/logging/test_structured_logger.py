"""
Tests unitaires Logging - Structured Logger

- Format JSON, champs obligatoires timestamp, level, correlation_id, message
- Timestamp ISO 8601 UTC avec millisecondes
- correlation_id hérité de la requête courante
- Données sensibles masquées
"""

import json
import re
import uuid

import pytest

from parkgate.logging import (
    IStructuredLogger,
    LogConfig,
    LogLevel,
    MissingRequiredFieldError,
    StructuredLogger,
    stderr_handler,
)
from parkgate.observability import request_scope


TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


class TestJsonFormat:
    def test_output_is_valid_json(self) -> None:
        entry = StructuredLogger("test").info("Check-in effectué")

        parsed = json.loads(entry.to_json())

        assert isinstance(parsed, dict)

    def test_json_contains_required_fields(self) -> None:
        parsed = json.loads(StructuredLogger("test").info("message").to_json())

        for field_name in ("timestamp", "level", "correlation_id", "message", "logger"):
            assert field_name in parsed
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "test"

    def test_json_includes_extra(self) -> None:
        entry = StructuredLogger("test").info("Check-out", receipt="20250101-101500", fee="11.00")

        parsed = json.loads(entry.to_json())

        assert parsed["extra"] == {"receipt": "20250101-101500", "fee": "11.00"}

    def test_timestamp_iso8601_utc_millis(self) -> None:
        entry = StructuredLogger("test").info("message")

        assert TIMESTAMP_PATTERN.match(entry.timestamp)

    def test_output_handler_receives_json_line(self) -> None:
        lines = []
        logger = StructuredLogger("test", output_handler=lines.append)

        logger.warn("Aucune place libre")

        assert len(lines) == 1
        assert json.loads(lines[0])["level"] == "WARN"


class TestCorrelation:
    def test_explicit_correlation_id(self) -> None:
        entry = StructuredLogger("test").log(LogLevel.INFO, "message", correlation_id="corr-1")

        assert entry.correlation_id == "corr-1"

    def test_inherits_request_correlation_id(self) -> None:
        logger = StructuredLogger("test")

        with request_scope("req-42"):
            entry = logger.info("dans la requête")

        assert entry.correlation_id == "req-42"
        assert logger.get_entries_by_correlation("req-42") == [entry]

    def test_generates_uuid_outside_request(self) -> None:
        entry = StructuredLogger("test").info("hors requête")

        uuid.UUID(entry.correlation_id)


class TestLevels:
    def test_min_level_filters(self) -> None:
        logger = StructuredLogger("test", config=LogConfig(min_level=LogLevel.WARN))

        assert logger.info("ignoré") is None
        assert logger.error("gardé") is not None
        assert len(logger.get_entries()) == 1

    def test_debug_filtered_by_default(self) -> None:
        assert StructuredLogger("test").debug("détail") is None

    def test_all_levels(self) -> None:
        logger = StructuredLogger("test", config=LogConfig(min_level=LogLevel.DEBUG))

        logger.debug("d")
        logger.info("i")
        logger.warn("w")
        logger.error("e")
        logger.critical("c")

        assert [e.level for e in logger.get_entries()] == [
            LogLevel.DEBUG,
            LogLevel.INFO,
            LogLevel.WARN,
            LogLevel.ERROR,
            LogLevel.CRITICAL,
        ]
        assert len(logger.get_entries_by_level(LogLevel.WARN)) == 1


class TestMaskingAndValidation:
    def test_sensitive_extra_masked(self) -> None:
        entry = StructuredLogger("test").info("login", username="admin@park.com", password="123456")

        assert entry.extra["password"] == "***MASKED***"
        assert entry.extra["username"] == "admin@park.com"

    def test_masking_can_be_disabled(self) -> None:
        logger = StructuredLogger("test", config=LogConfig(mask_sensitive=False))

        assert logger.info("x", token="abc").extra["token"] == "abc"

    def test_empty_message_raises(self) -> None:
        with pytest.raises(MissingRequiredFieldError):
            StructuredLogger("test").info("")

    def test_empty_name_raises(self) -> None:
        with pytest.raises(ValueError):
            StructuredLogger("  ")


class TestBuffer:
    def test_max_entries(self) -> None:
        logger = StructuredLogger("test", max_entries=3)

        for i in range(5):
            logger.info(f"message {i}")

        assert [e.message for e in logger.get_entries()] == ["message 2", "message 3", "message 4"]

    def test_buffer_is_bounded_deque(self) -> None:
        logger = StructuredLogger("test", max_entries=2)

        assert logger._entries.maxlen == 2
        assert isinstance(logger.get_entries(), list)

    def test_clear_entries(self) -> None:
        logger = StructuredLogger("test")
        logger.info("x")

        logger.clear_entries()

        assert logger.get_entries() == []

    def test_child_shares_handler(self) -> None:
        lines = []
        child = StructuredLogger("parkgate", output_handler=lines.append).child("parking")

        entry = child.info("x")

        assert entry.logger_name == "parkgate.parking"
        assert len(lines) == 1

    def test_implements_interface(self) -> None:
        assert isinstance(StructuredLogger("test"), IStructuredLogger)

    def test_stderr_handler_one_json_line(self, capsys) -> None:
        logger = StructuredLogger("test", output_handler=stderr_handler)

        logger.info("Check-in effectué", receipt="20250101-101500")

        line = capsys.readouterr().err.strip()
        assert json.loads(line)["extra"]["receipt"] == "20250101-101500"

"""Unit tests for logging setup and formatters."""

import io
import json
import logging
from collections.abc import Iterator

import pytest

from waffles.utils.logging import (
    ROOT_LOGGER_NAME,
    HumanFormatter,
    JSONFormatter,
    LogMode,
    VerboseFormatter,
    configure_from_cli,
    get_logger,
    setup_logging,
)


def _record(msg: str = "hello", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("waffles.test", level, __file__, 1, msg, (), None)


@pytest.fixture(autouse=True)
def reset_logger() -> Iterator[None]:
    """Restore default logging after each test."""
    yield
    setup_logging()


class TestFormatters:
    """Tests for output formats."""

    def test_human(self) -> None:
        """Test human format without colors."""
        assert HumanFormatter(use_colors=False).format(_record()) == "[INFO] hello"

    def test_verbose_has_timestamp(self) -> None:
        """Test verbose format includes HH:MM:SS."""
        line = VerboseFormatter(use_colors=False).format(_record(level=logging.WARNING))

        assert line.startswith("[WARNING][")
        assert line.endswith("] hello")

    def test_json(self) -> None:
        """Test JSON lines carry level, logger, and message."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "waffles.test"
        assert data["msg"] == "hello"
        assert "ts" in data


class TestSetup:
    """Tests for logger configuration."""

    def test_setup_writes_to_stream(self) -> None:
        """Test messages under the waffles hierarchy reach the stream."""
        stream = io.StringIO()
        setup_logging(mode=LogMode.HUMAN, level=logging.INFO, stream=stream)

        logging.getLogger("waffles.pipeline.executor").info("stage started")

        assert "[INFO] stage started" in stream.getvalue()

    def test_level_filters(self) -> None:
        """Test messages below the level are dropped."""
        stream = io.StringIO()
        setup_logging(level=logging.WARNING, stream=stream)

        get_logger().info("hidden")

        assert stream.getvalue() == ""

    def test_structured_extra_fields(self) -> None:
        """Test structured() adds fields in JSON mode."""
        stream = io.StringIO()
        setup_logging(mode=LogMode.JSON, stream=stream)

        get_logger().structured(logging.INFO, "stage done", phase="llm_execution")

        data = json.loads(stream.getvalue())
        assert data["phase"] == "llm_execution"

    @pytest.mark.parametrize(
        ("kwargs", "level"),
        [
            ({}, logging.INFO),
            ({"verbose": True}, logging.DEBUG),
            ({"quiet": True}, logging.WARNING),
        ],
    )
    def test_configure_from_cli_levels(self, kwargs: dict[str, bool], level: int) -> None:
        """Test CLI flags map to log levels."""
        configure_from_cli(**kwargs)

        assert logging.getLogger(ROOT_LOGGER_NAME).level == level

    def test_ci_uses_json(self) -> None:
        """Test CI mode installs the JSON formatter."""
        configure_from_cli(ci=True)

        handler = logging.getLogger(ROOT_LOGGER_NAME).handlers[0]
        assert isinstance(handler.formatter, JSONFormatter)

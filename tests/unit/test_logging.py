"""Unit tests for logging setup."""

import io
import json
import logging
from collections.abc import Iterator

import pytest

from archlens.utils.logging import (
    ROOT_LOGGER,
    ArchlensLogger,
    LogMode,
    configure_from_cli,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_root_logger() -> Iterator[None]:
    """Restore the archlens logger after each test."""
    yield
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


class TestSetupLogging:
    """Tests for setup_logging output modes."""

    def test_human_mode(self) -> None:
        """Test human mode prints level and message only."""
        stream = io.StringIO()
        setup_logging(LogMode.HUMAN, stream=stream)

        get_logger("archlens.test").info("hello")

        assert stream.getvalue() == "[INFO] hello\n"

    def test_verbose_mode_includes_logger_name(self) -> None:
        """Test verbose mode adds time and logger name."""
        stream = io.StringIO()
        setup_logging(LogMode.VERBOSE, level=logging.DEBUG, stream=stream)

        get_logger("archlens.test").debug("details")

        line = stream.getvalue()
        assert line.startswith("[DEBUG][")
        assert "archlens.test: details" in line

    def test_json_mode_structured_fields(self) -> None:
        """Test JSON mode emits one object per line with structured extras."""
        stream = io.StringIO()
        setup_logging(LogMode.JSON, stream=stream)

        get_logger("archlens.test").structured(logging.INFO, "chunked", chunks=3)

        entry = json.loads(stream.getvalue())
        assert entry["level"] == "INFO"
        assert entry["logger"] == "archlens.test"
        assert entry["msg"] == "chunked"
        assert entry["chunks"] == 3

    def test_level_filters_structured(self) -> None:
        """Test structured records respect the logger level."""
        stream = io.StringIO()
        setup_logging(LogMode.JSON, level=logging.WARNING, stream=stream)

        get_logger("archlens.test").structured(logging.INFO, "quiet")

        assert stream.getvalue() == ""

    def test_does_not_propagate(self) -> None:
        """Test archlens records stay out of the root logger."""
        setup_logging(stream=io.StringIO())

        assert logging.getLogger(ROOT_LOGGER).propagate is False

    def test_get_logger_class(self) -> None:
        """Test get_logger returns the structured logger class."""
        assert isinstance(get_logger("archlens.test.fresh"), ArchlensLogger)


class TestConfigureFromCli:
    """Tests for CLI flag mapping."""

    @pytest.mark.parametrize(
        ("flags", "level"),
        [
            ({}, logging.INFO),
            ({"verbose": True}, logging.DEBUG),
            ({"quiet": True}, logging.WARNING),
            ({"verbose": True, "quiet": True}, logging.WARNING),
        ],
    )
    def test_levels(self, flags: dict[str, bool], level: int) -> None:
        """Test flags select the log level."""
        configure_from_cli(**flags)

        assert logging.getLogger(ROOT_LOGGER).level == level

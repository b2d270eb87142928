"""Test log level filtering, especially spew level."""

import pytest

from devharness.core.log import ConsoleSink, FileSink, create_logger


@pytest.fixture
def write_all_levels(tmp_path):
    """Log one message per level at the given file sink level."""

    def write(level):
        log_file = tmp_path / f"{level}.log"
        logger = create_logger(
            log_root=tmp_path,
            run_name="test",
            console=ConsoleSink(enabled=False),
            file=FileSink(enabled=True, level=level, path=str(log_file)),
        )
        logger.spew("SPEW message")
        logger.trace("TRACE message")
        logger.debug("DEBUG message")
        logger.info("INFO message")
        logger.warn("WARN message")
        logger.error("ERROR message")
        logger.close()
        return log_file.read_text()

    return write


def test_spew_level_includes_all(write_all_levels):
    content = write_all_levels("spew")

    for name in ["SPEW", "TRACE", "DEBUG", "INFO", "WARN", "ERROR"]:
        assert f"{name} message" in content


def test_trace_level_filters_spew(write_all_levels):
    content = write_all_levels("trace")

    assert "SPEW message" not in content
    assert "TRACE message" in content
    assert "DEBUG message" in content


def test_info_level_filters_debug_trace_spew(write_all_levels):
    content = write_all_levels("info")

    assert "SPEW message" not in content
    assert "TRACE message" not in content
    assert "DEBUG message" not in content
    assert "INFO message" in content
    assert "WARN message" in content


def test_error_level_keeps_only_errors(write_all_levels):
    content = write_all_levels("error")

    assert "WARN message" not in content
    assert "ERROR message" in content


def test_text_format_shows_level_names(write_all_levels):
    content = write_all_levels("info")

    assert "[info] INFO message" in content
    assert "[warn] WARN message" in content

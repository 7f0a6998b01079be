import logging
import sys

import pytest
from loguru import logger

from novel_refiner.utils.logger import InterceptHandler, setup_logger


@pytest.fixture(autouse=True)
def restore_loguru():
    yield
    logger.remove()
    logger.add(sys.stderr)


def capture(level="DEBUG"):
    messages = []
    logger.add(lambda message: messages.append(message.record["message"]), level=level)
    return messages


def test_file_sink_keeps_debug(tmp_path):
    log_file = tmp_path / "logs" / "refine.log"
    setup_logger("WARNING", log_file)

    logger.debug("Refining chapter 3")
    logger.remove()

    assert "Refining chapter 3" in log_file.read_text(encoding="utf-8")


def test_setup_replaces_sinks(tmp_path):
    stale = capture()
    setup_logger("INFO")

    logger.info("after setup")
    assert stale == []


def test_library_warnings_reach_loguru():
    setup_logger("INFO")
    messages = capture()

    logging.getLogger("openai").warning("Retrying request in 2 seconds")
    logging.getLogger("httpx").info("HTTP Request: POST /chat/completions")

    assert messages == ["[openai] Retrying request in 2 seconds"]


def test_repeated_setup_keeps_one_library_handler():
    setup_logger("INFO")
    setup_logger("DEBUG")

    handlers = logging.getLogger("openai").handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], InterceptHandler)
    assert logging.getLogger("openai").propagate is False

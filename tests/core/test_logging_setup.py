import sys

from loguru import logger

from dialogue_memory.logging_setup import configure_logging


def test_configure_logging_filters_by_level():
    messages = []
    handler_id = configure_logging(level="warning", sink=messages.append)
    try:
        logger.info("hidden")
        logger.warning("shown")
    finally:
        logger.remove(handler_id)
        logger.add(sys.stderr)

    assert len(messages) == 1
    assert "WARNING" in messages[0]
    assert "shown" in messages[0]

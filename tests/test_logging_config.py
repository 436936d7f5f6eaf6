import logging

import structlog

from finance_forecast.logging_config import configure_logging


def test_configure_logging_sets_level_and_handler():
    configure_logging("warning")

    root_logger = logging.getLogger()
    assert root_logger.level == logging.WARNING
    assert len(root_logger.handlers) == 1
    assert isinstance(
        root_logger.handlers[0].formatter, structlog.stdlib.ProcessorFormatter
    )

    structlog.reset_defaults()

"""Shared fixtures for unit tests."""

import logging

import pytest

from apiserver.domain.correlation_id import clear_correlation_id


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Route project logs to the root logger so caplog can catch them."""
    logger = logging.getLogger("apiserver")
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    yield
    logger.propagate = True
    clear_correlation_id()

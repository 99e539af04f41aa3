"""Shared fixtures for contact_mirror tests."""

import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Restore the package logger after tests that configure logging."""
    yield
    logger = logging.getLogger("contact_mirror")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)

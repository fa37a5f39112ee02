import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_grepfuzz_logger():
    yield
    logger = logging.getLogger("grepfuzz")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)

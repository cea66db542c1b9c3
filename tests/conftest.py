"""Shared test fixtures.

Provides:
- ``reset_relay_state`` - autouse fixture that clears the config singleton
  and detaches any diagnostic log handlers a test attached
- ``relay_config`` - RelayConfig rooted in the test's tmp_path
- ``frame`` - helper that builds a length-prefixed frame from raw bytes
"""

import logging
import struct

import pytest

from inboxrelay.config import RelayConfig, reset_config
from inboxrelay.logs import LOGGER_NAME, close_logging


@pytest.fixture(autouse=True)
def reset_relay_state():
    reset_config()
    yield
    reset_config()
    close_logging()
    logger = logging.getLogger(LOGGER_NAME)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def relay_config(tmp_path) -> RelayConfig:
    """Config with every file location under tmp_path."""
    return RelayConfig(
        inbox_dir=tmp_path / "inbox",
        output_dir=tmp_path / "out",
        fallback_output=tmp_path / "desktop" / "fallback_output.txt",
        log_file=tmp_path / "error.log",
        poll_interval=0.05,
    )


def make_frame(payload: bytes, length=None) -> bytes:
    """Length prefix (little-endian int32) followed by payload."""
    if length is None:
        length = len(payload)
    return struct.pack("<i", length) + payload


@pytest.fixture()
def frame():
    return make_frame

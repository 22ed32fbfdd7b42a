"""
Pytest configuration and fixtures for ntag424 tests.

Provides the reference master key, UID and counter used across the codec
tests, plus helpers to compute expected values directly with cryptography.
"""

import logging

import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import cmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


# ============================================================================
# Reference Values
# ============================================================================

MASTER_KEY_HEX = "00112233445566778899AABBCCDDEEFF"
OTHER_KEY_HEX = "FFEEDDCCBBAA99887766554433221100"
UID_HEX = "04AABBCCDDEE80"
COUNTER = 42


@pytest.fixture
def master_key_hex():
    """Reference master key as hex."""
    return MASTER_KEY_HEX


@pytest.fixture
def master_key():
    """Reference master key as bytes."""
    return bytes.fromhex(MASTER_KEY_HEX)


@pytest.fixture
def other_key_hex():
    """A second, unrelated master key."""
    return OTHER_KEY_HEX


@pytest.fixture
def uid_hex():
    """Reference tag UID."""
    return UID_HEX


@pytest.fixture
def counter():
    """Reference read counter."""
    return COUNTER


# ============================================================================
# Crypto Helpers
# ============================================================================


def reference_cmac(key: bytes, data: bytes) -> bytes:
    """AES-CMAC computed directly with cryptography."""
    c = cmac.CMAC(algorithms.AES(key), backend=default_backend())
    c.update(data)
    return c.finalize()


def reference_cbc_decrypt(key: bytes, data: bytes) -> bytes:
    """AES-128-CBC decryption with a zero IV."""
    cipher = Cipher(algorithms.AES(key), modes.CBC(bytes(16)), backend=default_backend())
    decryptor = cipher.decryptor()
    return decryptor.update(data) + decryptor.finalize()


@pytest.fixture(autouse=True)
def reset_ntag424_logger():
    """Restore the ntag424 logger tree after each test."""
    logger = logging.getLogger("ntag424")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate

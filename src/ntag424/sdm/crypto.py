"""AES and AES-CMAC helpers used by the SDM codec.

SDM encrypts with AES-128-CBC under an all-zero IV and no PKCS padding;
callers supply block-aligned input. MACs are AES-CMAC, truncated by the
caller.
"""

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import cmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ntag424.sdm.exceptions import ValidationError

AES_BLOCK_SIZE = 16
AES_KEY_SIZE = 16
ZERO_IV = bytes(AES_BLOCK_SIZE)


def _check_key(key: bytes) -> None:
    if len(key) != AES_KEY_SIZE:
        raise ValidationError(
            "Key must be 16 bytes", "key", f"{len(key)} bytes", "16 bytes"
        )


def _check_blocks(data: bytes) -> None:
    if not data:
        raise ValidationError("Data cannot be empty", "data", 0, ">0")
    if len(data) % AES_BLOCK_SIZE != 0:
        raise ValidationError(
            "Data length must be multiple of 16 bytes",
            "data",
            len(data),
            "multiple of 16",
        )


def pad_zero(data: bytes, block_size: int = AES_BLOCK_SIZE) -> bytes:
    """Zero-pad data up to the next block boundary.

    Block-aligned input is returned unchanged; empty input stays empty.
    """
    remainder = len(data) % block_size
    if remainder == 0:
        return bytes(data)
    return bytes(data) + b"\x00" * (block_size - remainder)


def cbc_encrypt(key: bytes, data: bytes, iv: bytes = ZERO_IV) -> bytes:
    """Encrypt block-aligned data with AES-128-CBC.

    Args:
        key: AES key (16 bytes).
        data: Plaintext, a non-empty multiple of 16 bytes.
        iv: Initial vector (all-zero by default).

    Returns:
        Ciphertext of the same length.
    """
    _check_key(key)
    _check_blocks(data)

    cipher = Cipher(algorithms.AES(key), modes.CBC(iv), backend=default_backend())
    encryptor = cipher.encryptor()
    return encryptor.update(data) + encryptor.finalize()


def cbc_decrypt(key: bytes, data: bytes, iv: bytes = ZERO_IV) -> bytes:
    """Decrypt block-aligned data with AES-128-CBC."""
    _check_key(key)
    _check_blocks(data)

    cipher = Cipher(algorithms.AES(key), modes.CBC(iv), backend=default_backend())
    decryptor = cipher.decryptor()
    return decryptor.update(data) + decryptor.finalize()


def ecb_encrypt(key: bytes, data: bytes) -> bytes:
    """Encrypt block-aligned data with AES-128-ECB."""
    _check_key(key)
    _check_blocks(data)

    cipher = Cipher(algorithms.AES(key), modes.ECB(), backend=default_backend())
    encryptor = cipher.encryptor()
    return encryptor.update(data) + encryptor.finalize()


def aes_cmac(key: bytes, data: bytes) -> bytes:
    """Calculate AES-CMAC.

    Args:
        key: AES key (16 bytes).
        data: Data to MAC (any length, including empty).

    Returns:
        16-byte MAC.
    """
    _check_key(key)

    c = cmac.CMAC(algorithms.AES(key), backend=default_backend())
    c.update(data)
    return c.finalize()

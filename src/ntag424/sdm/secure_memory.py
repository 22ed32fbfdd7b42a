"""Key material handling for the SDM codec.

This module provides scoped containers for sensitive bytes, constant-time
comparison and secure random key generation. Every container zeroes its
contents when its ``with`` block exits, on success and on error alike.

Note:
    Zeroing is best-effort. Python and the cryptographic backend may hold
    copies of key material that cannot be overwritten from here.
"""

import hmac
import secrets

from ntag424.sdm.exceptions import SecurityError
from ntag424.sdm.models import DerivationMethod


def secure_erase(data: bytearray) -> None:
    """Overwrite a bytearray with zeros in place.

    Args:
        data: Bytearray to erase (must be mutable).

    Raises:
        TypeError: If data is not a bytearray.
    """
    if not isinstance(data, bytearray):
        raise TypeError("Data must be a bytearray for in-place modification")

    for i in range(len(data)):
        data[i] = 0


def timing_safe_equal(a: bytes, b: bytes) -> bool:
    """Compare two byte strings in constant time.

    Inputs of different lengths are zero-padded to the same length before the
    comparison, so the running time does not depend on where they differ. A
    length mismatch still compares unequal.

    Example:
        >>> timing_safe_equal(bytes.fromhex("AABB"), bytes.fromhex("AABB"))
        True
        >>> timing_safe_equal(bytes.fromhex("AABB"), bytes.fromhex("AA"))
        False
    """
    size = max(len(a), len(b))
    padded_a = bytes(a).ljust(size, b"\x00")
    padded_b = bytes(b).ljust(size, b"\x00")
    same_content = hmac.compare_digest(padded_a, padded_b)
    return same_content and len(a) == len(b)


def generate_random_key(size: int = 16) -> bytes:
    """Generate a cryptographically secure random key.

    Raises:
        ValueError: If size is less than 1.
    """
    if size < 1:
        raise ValueError("Key size must be at least 1 byte")

    return secrets.token_bytes(size)


class SecureBuffer:
    """Fixed-size buffer for key material, zeroed on scope exit.

    Example:
        >>> with SecureBuffer.from_bytes(bytes.fromhex("00112233445566778899AABBCCDDEEFF")) as key:
        ...     use(key.data)
        >>> key.cleared
        True
    """

    __slots__ = ("_buffer", "_cleared")

    def __init__(self, size: int):
        self._buffer = bytearray(size)
        self._cleared = False

    @classmethod
    def from_bytes(cls, data: bytes) -> "SecureBuffer":
        """Create a buffer holding a copy of ``data``."""
        buffer = cls(len(data))
        buffer._buffer[:] = data
        return buffer

    @property
    def data(self) -> bytearray:
        """Buffer contents.

        Raises:
            SecurityError: If the buffer was already cleared.
        """
        if self._cleared:
            raise SecurityError(
                "Attempted to access cleared secure buffer",
                "MEMORY_ACCESS_VIOLATION",
            )
        return self._buffer

    @property
    def cleared(self) -> bool:
        """Whether the buffer has been cleared."""
        return self._cleared

    def __len__(self) -> int:
        return len(self._buffer)

    def clear(self) -> None:
        """Overwrite with random bytes, then zeros."""
        if self._cleared:
            return
        self._buffer[:] = secrets.token_bytes(len(self._buffer))
        secure_erase(self._buffer)
        self._cleared = True

    def __enter__(self) -> "SecureBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    def __repr__(self) -> str:
        state = "cleared" if self._cleared else "active"
        return f"SecureBuffer(size={len(self._buffer)}, {state})"


class SessionKeyPair:
    """Encryption and MAC session keys derived for a single codec call.

    The pair is a context manager; both keys are zeroed when the block exits.

    Attributes:
        method: Derivation method that produced the keys.
    """

    __slots__ = ("_enc", "_mac", "method")

    def __init__(self, enc_key: bytes, mac_key: bytes, method: DerivationMethod):
        self._enc = SecureBuffer.from_bytes(enc_key)
        self._mac = SecureBuffer.from_bytes(mac_key)
        self.method = method

    @property
    def enc_key(self) -> bytearray:
        """Session encryption key (live buffer, zeroed by wipe())."""
        return self._enc.data

    @property
    def mac_key(self) -> bytearray:
        """Session MAC key (live buffer, zeroed by wipe())."""
        return self._mac.data

    @property
    def cleared(self) -> bool:
        """Whether the keys were wiped."""
        return self._enc.cleared and self._mac.cleared

    def to_hex(self) -> dict:
        """Informational hex view of the keys."""
        return {
            "enc_key": self.enc_key.hex().upper(),
            "mac_key": self.mac_key.hex().upper(),
            "derivation_method": self.method.label,
        }

    def wipe(self) -> None:
        """Zero both keys."""
        self._enc.clear()
        self._mac.clear()

    def __enter__(self) -> "SessionKeyPair":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        state = "cleared" if self.cleared else "active"
        return f"SessionKeyPair(method={self.method.value}, {state})"


"""Data models for the NTAG424 SDM codec.

This module defines the enumerations and dataclasses shared by the profile
registry, the key derivation engine and the codec.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlencode

# =============================================================================
# Protocol Constants
# =============================================================================

PICC_DATA_TAG = 0xC7
UID_PREFIX = 0x04
UID_LENGTH = 7
COUNTER_LENGTH = 3
MAX_COUNTER = 0xFFFFFF
MASTER_KEY_LENGTH = 16
CMAC_LENGTH = 8
MIN_PICC_LENGTH = 11


# =============================================================================
# Enumerations
# =============================================================================


class DerivationMethod(Enum):
    """Session key derivation strategies.

    Encoder and decoder must use the same method for a given message.
    """

    NTAG424_OFFICIAL = "ntag424Official"  # AES-CMAC over SV1/SV2
    HKDF = "hkdf"  # RFC 5869
    PBKDF2 = "pbkdf2"  # RFC 2898
    SIMPLE_HASH = "simpleHash"  # Hash(master || uid || ctr || label)

    @classmethod
    def parse(cls, value: Any) -> "DerivationMethod":
        """Parse a method from an enum member, value or name.

        Accepts ``"ntag424Official"``, ``"ntag424_official"`` and
        ``"NTAG424_OFFICIAL"`` style spellings.

        Raises:
            ValueError: If the method is unknown.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if value == member.value or value.upper() == member.name:
                    return member
        raise ValueError(f"Unknown key derivation method: {value!r}")

    @property
    def label(self) -> str:
        """Method name as reported in results."""
        return {
            DerivationMethod.NTAG424_OFFICIAL: "ntag424-official",
            DerivationMethod.HKDF: "hkdf",
            DerivationMethod.PBKDF2: "pbkdf2",
            DerivationMethod.SIMPLE_HASH: "simple-hash",
        }[self]


class Operation(Enum):
    """Codec operations checked against a profile."""

    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


# =============================================================================
# Profile
# =============================================================================


@dataclass(frozen=True)
class SDMProfile:
    """Byte layout of the PICC block.

    Attributes:
        name: Profile name (``"custom"`` for built layouts).
        include_uid: Whether the UID is mirrored.
        include_counter: Whether the read counter is mirrored.
        include_file_data: Whether encrypted file data is permitted.
        picc_data_length: Plaintext PICC block length in bytes.
        uid_offset: UID start offset in the block.
        uid_length: UID length in bytes.
        counter_offset: Counter start offset in the block.
        counter_length: Counter length in bytes.
        enc_file_data_length: Expected encrypted file data length.
    """

    name: str
    include_uid: bool
    include_counter: bool
    include_file_data: bool
    picc_data_length: int = 16
    uid_offset: int = 1
    uid_length: int = UID_LENGTH
    counter_offset: int = 8
    counter_length: int = COUNTER_LENGTH
    enc_file_data_length: int = 16

    @property
    def uid_range(self) -> range:
        """Byte range occupied by the UID."""
        return range(self.uid_offset, self.uid_offset + self.uid_length)

    @property
    def counter_range(self) -> range:
        """Byte range occupied by the counter."""
        return range(self.counter_offset, self.counter_offset + self.counter_length)

    @property
    def data_end(self) -> int:
        """First byte after the last used region."""
        end = 1
        if self.include_uid:
            end = max(end, self.uid_offset + self.uid_length)
        if self.include_counter:
            end = max(end, self.counter_offset + self.counter_length)
        return end

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "include_uid": self.include_uid,
            "include_counter": self.include_counter,
            "include_file_data": self.include_file_data,
            "picc_data_length": self.picc_data_length,
            "uid_offset": self.uid_offset,
            "uid_length": self.uid_length,
            "counter_offset": self.counter_offset,
            "counter_length": self.counter_length,
            "enc_file_data_length": self.enc_file_data_length,
        }


@dataclass
class ProfileValidation:
    """Outcome of profile validation."""

    is_valid: bool
    errors: list = field(default_factory=list)


# =============================================================================
# PICC Record
# =============================================================================


@dataclass
class PICCRecord:
    """Semantic content of a decrypted PICC block.

    Attributes:
        data_tag: PICC data tag (0xC7 for a valid block).
        uid: Extracted UID bytes, if the profile includes it.
        read_counter: Extracted counter bytes, if the profile includes it.
        read_counter_int: Counter interpreted as big-endian unsigned int.
        padding: Bytes after the last used region.
        raw: Full decrypted block.
    """

    data_tag: Optional[int]
    uid: Optional[bytes] = None
    read_counter: Optional[bytes] = None
    read_counter_int: Optional[int] = None
    padding: Optional[bytes] = None
    raw: bytes = b""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "data_tag": self.data_tag,
            "uid": self.uid.hex().upper() if self.uid is not None else None,
            "read_counter": self.read_counter.hex().upper() if self.read_counter is not None else None,
            "read_counter_int": self.read_counter_int,
            "padding": self.padding.hex().upper() if self.padding is not None else None,
            "raw": self.raw.hex().upper(),
        }


# =============================================================================
# Wire Form
# =============================================================================


@dataclass(frozen=True)
class EncryptedMessage:
    """Wire form of an SDM message as upper-case hex strings.

    Attributes:
        picc: PICC ciphertext (one or more 16-byte blocks).
        cmac: Truncated CMAC (8 bytes).
        enc: Encrypted file data (multiple of 16 bytes), if any.
    """

    picc: str
    cmac: str
    enc: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        """Query parameters in wire order."""
        params = {"picc_data": self.picc, "cmac": self.cmac}
        if self.enc:
            params["enc"] = self.enc
        return params

    def to_query_string(self) -> str:
        """Encode as a query string."""
        return urlencode(self.to_params())

    def generate_url(self, base_url: str = "https://example.com/nfc") -> str:
        """Build a complete tag URL."""
        return f"{base_url}?{self.to_query_string()}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {"picc": self.picc, "cmac": self.cmac}
        if self.enc:
            result["enc"] = self.enc
        return result


@dataclass
class EncodeResult:
    """Result of an encode call.

    Attributes:
        original_data: Redacted description of the inputs.
        encrypted: Wire form.
        metadata: Timestamp and profile information.
    """

    original_data: Dict[str, Any]
    encrypted: EncryptedMessage
    metadata: Dict[str, Any] = field(default_factory=dict)

    def generate_url(self, base_url: str = "https://example.com/nfc") -> str:
        """Build a complete tag URL from the encrypted fields."""
        return self.encrypted.generate_url(base_url)

    def to_query_string(self) -> str:
        """Build a query string from the encrypted fields."""
        return self.encrypted.to_query_string()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "original_data": dict(self.original_data),
            "encrypted_data": self.encrypted.to_dict(),
            "metadata": dict(self.metadata),
        }


@dataclass
class DecodedMessage:
    """Result of a decode call.

    ``success`` reports whether the message was well-formed and decrypted to
    a structurally valid PICC block. ``cmac_valid`` reports authenticity.
    Callers must check both.
    """

    success: bool
    uid: Optional[str] = None
    read_counter: Optional[int] = None
    data_tag: Optional[str] = None
    file_data: Optional[str] = None
    cmac_valid: bool = False
    session_keys: Optional[Dict[str, str]] = None
    raw_decrypted: Optional[Dict[str, Optional[str]]] = None
    picc_info: Optional[PICCRecord] = None
    counter_hint: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def is_authentic(self) -> bool:
        """Whether the message decoded and its CMAC verified."""
        return self.success and self.cmac_valid

    @classmethod
    def failure(cls, error: Exception, **metadata: Any) -> "DecodedMessage":
        """Build a failed result from an exception."""
        return cls(
            success=False,
            error=str(error),
            error_code=getattr(error, "code", None),
            error_type=error.__class__.__name__,
            metadata={"timestamp": utc_now(), **metadata},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        if not self.success:
            return {
                "success": False,
                "error": self.error,
                "error_code": self.error_code,
                "error_type": self.error_type,
                "metadata": dict(self.metadata),
            }
        return {
            "success": True,
            "uid": self.uid,
            "read_counter": self.read_counter,
            "data_tag": self.data_tag,
            "file_data": self.file_data,
            "cmac_valid": self.cmac_valid,
            "session_keys": self.session_keys,
            "raw_decrypted": self.raw_decrypted,
            "picc_info": self.picc_info.to_dict() if self.picc_info else None,
            "counter_hint": self.counter_hint,
            "metadata": dict(self.metadata),
        }


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()

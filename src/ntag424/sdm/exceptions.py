"""Exception hierarchy for the NTAG424 SDM codec.

This module defines all exceptions raised by the codec with machine-readable
codes, contextual details and troubleshooting hints.

Exception Hierarchy:
    NTAG424Error (base)
    ├── ValidationError - Malformed input (hex, lengths, ranges)
    │   └── KeyDerivationError - Bad key derivation input or parameters
    ├── EncryptionError - Failure inside an encode step
    ├── DecryptionError - Failure inside a decode step
    ├── SDMProfileError - Profile/operation incompatibility
    └── SecurityError - Defense-in-depth failures
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

REDACTED = "[REDACTED]"

# Detail keys that always hold key material
SENSITIVE_FIELDS = frozenset({
    "master_key",
    "masterKey",
    "enc_key",
    "mac_key",
    "encKey",
    "macKey",
})

_KEY_HEX_PATTERN = re.compile(r"^[0-9A-Fa-f]{32}$")

TROUBLESHOOTING_TIPS: Dict[str, List[str]] = {
    "VALIDATION_ERROR": [
        "Check input format and required fields",
        "Ensure hex strings have correct length",
        "Verify UID starts with 04 for NFC Type A tags",
    ],
    "KEY_DERIVATION_ERROR": [
        "Verify the master key is 16 bytes",
        "Check derivation parameters (iterations, key length, SV length)",
    ],
    "DECRYPTION_ERROR": [
        "Verify master key is correct",
        "Check for data corruption during transmission",
        "Ensure SDM profile matches the tag configuration",
    ],
    "ENCRYPTION_ERROR": [
        "Validate input parameters",
        "Check SDM profile compatibility",
        "Ensure master key is valid hex string",
    ],
    "SDM_PROFILE_ERROR": [
        "Use 'full' profile for file data encryption",
        "Check profile supports required data types",
        "Verify custom profile configuration",
    ],
    "SECURITY_ERROR": [
        "Verify data integrity",
        "Review security configuration",
    ],
}


def troubleshooting_tips(error: "NTAG424Error") -> List[str]:
    """Get troubleshooting tips for an error code."""
    return TROUBLESHOOTING_TIPS.get(
        getattr(error, "code", ""), ["Check documentation for common issues"]
    )


def redact_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``details`` with key material replaced.

    A value is redacted when its key is a known sensitive field, or when the
    ``field`` entry names a key, or when ``value`` looks like a 16-byte hex key.
    """
    sanitized: Dict[str, Any] = {}
    for key, value in details.items():
        if key in SENSITIVE_FIELDS and value is not None:
            sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = redact_details(value)
        else:
            sanitized[key] = value

    field_name = str(sanitized.get("field") or "")
    value = sanitized.get("value")
    if field_name.lower().endswith("key") and value is not None:
        sanitized["value"] = REDACTED
    elif isinstance(value, str) and _KEY_HEX_PATTERN.match(value):
        sanitized["value"] = REDACTED
    return sanitized


class NTAG424Error(Exception):
    """Base exception for all codec errors.

    All codec exceptions inherit from this class, allowing callers to catch
    every codec failure with a single handler.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code.
        details: Contextual details (never contains key material).
        hint: Troubleshooting hint.
        timestamp: ISO 8601 creation time.
    """

    code = "NTAG424_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = redact_details(details or {})
        self.hint = hint if hint is not None else "; ".join(troubleshooting_tips(self))
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, details={self.details!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "hint": self.hint,
            "timestamp": self.timestamp,
        }


# =============================================================================
# Input Errors
# =============================================================================


class ValidationError(NTAG424Error):
    """Raised when input validation fails.

    This covers:
    - Invalid hex strings
    - Wrong lengths for keys, UIDs and counters
    - Out-of-range counter values

    Attributes:
        field: Name of the offending field.
        value: Observed value (redacted for key fields).
        expected: Expected value or shape.
    """

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        expected: Any = None,
    ) -> None:
        super().__init__(
            message, {"field": field, "value": value, "expected": expected}
        )
        self.field = field
        self.value = self.details["value"]
        self.expected = expected


class KeyDerivationError(ValidationError):
    """Raised when key derivation inputs or parameters are invalid."""

    code = "KEY_DERIVATION_ERROR"


# =============================================================================
# Codec Step Errors
# =============================================================================


class EncryptionError(NTAG424Error):
    """Raised when an encoding step fails.

    Attributes:
        step: Encode phase that failed (e.g. ``buildPiccData``).
    """

    code = "ENCRYPTION_ERROR"

    def __init__(self, message: str, step: str, **context: Any) -> None:
        super().__init__(message, {"step": step, **context})
        self.step = step


class DecryptionError(NTAG424Error):
    """Raised when a decoding step fails.

    Attributes:
        step: Decode phase that failed (e.g. ``validation``).
    """

    code = "DECRYPTION_ERROR"

    def __init__(self, message: str, step: str, **context: Any) -> None:
        super().__init__(message, {"step": step, **context})
        self.step = step


# =============================================================================
# Profile and Security Errors
# =============================================================================


class SDMProfileError(NTAG424Error):
    """Raised when an SDM profile is invalid or incompatible with an operation."""

    code = "SDM_PROFILE_ERROR"

    def __init__(
        self,
        message: str,
        profile: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message, {"profile": profile, "operation": operation})
        self.profile = profile
        self.operation = operation


class SecurityError(NTAG424Error):
    """Raised for security-related failures.

    This includes:
    - CMAC computation failures
    - Access to cleared secure buffers
    - Unexpected failures inside the cryptographic library
    """

    code = "SECURITY_ERROR"

    def __init__(self, message: str, threat: str, **context: Any) -> None:
        super().__init__(message, {"threat": threat, **context})
        self.threat = threat

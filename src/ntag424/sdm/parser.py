"""Input parsing and validation for SDM messages.

Tags emit their payload as URL query parameters. Different deployments use
different parameter names, so every parser here resolves the same aliases:

    picc:    picc_data, picc, uid
    enc:     enc, enc_data, encdata
    cmac:    cmac, mac
    counter: ctr, counter   (plaintext hint, never trusted)

Example:
    >>> data = parse_url("https://example.com/nfc?picc_data=AB12&cmac=CD34")
    >>> data["picc"], data["cmac"], data["enc"]
    ('AB12', 'CD34', None)
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlsplit

from ntag424.sdm.exceptions import ValidationError
from ntag424.sdm.models import CMAC_LENGTH, EncryptedMessage

_HEX_PATTERN = re.compile(r"^[0-9A-Fa-f]+$")
_WHITESPACE = re.compile(r"\s+")

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "picc": ("picc_data", "picc", "uid"),
    "enc": ("enc", "enc_data", "encdata"),
    "cmac": ("cmac", "mac"),
    "counter": ("ctr", "counter"),
}

ParsedData = Dict[str, Optional[str]]


def _first(params: Mapping[str, Any], names: Sequence[str]) -> Optional[str]:
    """First non-empty value among ``names``."""
    for name in names:
        value = params.get(name)
        if isinstance(value, list):
            value = value[0] if value else None
        if value:
            return value
    return None


def _resolve_fields(params: Mapping[str, Any]) -> ParsedData:
    return {field: _first(params, names) for field, names in FIELD_ALIASES.items()}


# =============================================================================
# Parsers
# =============================================================================


def parse_url(url: str) -> ParsedData:
    """Parse SDM parameters from a complete URL.

    Args:
        url: Tag URL, e.g. ``https://example.com/nfc?picc_data=...&cmac=...``.

    Returns:
        Dictionary with ``picc``, ``enc``, ``cmac``, ``counter``,
        ``original_url`` and ``base_url``. Missing fields are None.

    Raises:
        ValidationError: If the URL is empty or malformed.
    """
    if not url or not isinstance(url, str):
        raise ValidationError("URL must be a non-empty string", "url", type(url).__name__)

    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise ValidationError(f"Invalid URL format: {e}", "url", url) from e
    if not parts.scheme or not parts.netloc:
        raise ValidationError(
            "Invalid URL format: missing scheme or host", "url", url, "scheme://host/path?query"
        )

    data = _resolve_fields(parse_qs(parts.query))
    data["original_url"] = url
    data["base_url"] = f"{parts.scheme}://{parts.netloc}{parts.path}"
    return data


def parse_query_string(query_string: str) -> ParsedData:
    """Parse SDM parameters from a query string (leading ``?`` allowed).

    Raises:
        ValidationError: If the query string is empty.
    """
    if not query_string or not isinstance(query_string, str):
        raise ValidationError(
            "Query string must be a non-empty string",
            "query_string",
            type(query_string).__name__,
        )
    return _resolve_fields(parse_qs(query_string.lstrip("?")))


def normalize_input(value: Any) -> ParsedData:
    """Normalize any accepted input shape into parsed fields.

    Strings containing ``://`` are parsed as URLs, other strings as query
    strings. Mappings are resolved through the same aliases, and
    :class:`EncryptedMessage` instances are used field by field.

    Raises:
        ValidationError: If the input type is not supported.
    """
    if isinstance(value, str):
        if "://" in value:
            return parse_url(value)
        return parse_query_string(value)
    if isinstance(value, EncryptedMessage):
        return {"picc": value.picc, "enc": value.enc, "cmac": value.cmac, "counter": None}
    if isinstance(value, Mapping):
        data = _resolve_fields(value)
        for extra in ("original_url", "base_url"):
            if extra in value:
                data[extra] = value[extra]
        return data
    raise ValidationError(
        "Invalid input format",
        "input",
        type(value).__name__,
        "URL, query string, mapping or EncryptedMessage",
    )


# =============================================================================
# Hex Helpers
# =============================================================================


def validate_hex_string(hex_string: Any, expected_length: Optional[int] = None) -> bool:
    """Check that a value is a non-empty hex string of the given length.

    Example:
        >>> validate_hex_string("ABC123", 6)
        True
        >>> validate_hex_string("XYZ")
        False
    """
    if not hex_string or not isinstance(hex_string, str):
        return False
    if not _HEX_PATTERN.match(hex_string):
        return False
    if expected_length is not None and len(hex_string) != expected_length:
        return False
    return True


def hex_to_bytes(hex_string: Any, field_name: str = "data") -> bytes:
    """Convert a hex string to bytes.

    Raises:
        ValidationError: If the value is empty, not hex, or of odd length.
    """
    if not hex_string or not isinstance(hex_string, str):
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name,
            type(hex_string).__name__,
            "hex string",
        )
    if not validate_hex_string(hex_string):
        raise ValidationError(
            f"{field_name} contains invalid hex characters",
            field_name,
            hex_string,
            "hex string",
        )
    if len(hex_string) % 2 != 0:
        raise ValidationError(
            f"{field_name} hex string must have even length",
            field_name,
            f"{len(hex_string)} characters",
            "even length",
        )
    return bytes.fromhex(hex_string)


def clean_hex_string(hex_string: Any) -> str:
    """Strip whitespace and upper-case a hex string.

    Example:
        >>> clean_hex_string("  ab c1 23 ")
        'ABC123'

    Raises:
        ValidationError: If the result is not a valid hex string.
    """
    if not hex_string or not isinstance(hex_string, str):
        raise ValidationError(
            "Hex string must be a non-empty string", "hex_string", type(hex_string).__name__
        )
    cleaned = _WHITESPACE.sub("", hex_string).upper()
    if not validate_hex_string(cleaned):
        raise ValidationError("Invalid hex string format", "hex_string", hex_string)
    return cleaned


# =============================================================================
# Structure Validation
# =============================================================================


def validate_parsed_data(
    data: Any,
    require_picc: bool = True,
    require_cmac: bool = True,
    strict_hex: bool = False,
) -> Tuple[bool, List[str]]:
    """Validate parsed SDM fields.

    In strict mode the hex fields must also be well-formed, PICC and ENC
    must be whole 16-byte blocks and the CMAC must be 8 bytes.

    Returns:
        Tuple of (is_valid, errors).
    """
    if not isinstance(data, Mapping):
        return False, ["Data must be a mapping"]

    errors: List[str] = []
    picc, enc, cmac = data.get("picc"), data.get("enc"), data.get("cmac")

    if require_picc and not picc:
        errors.append("Missing PICC data")
    if require_cmac and not cmac:
        errors.append("Missing CMAC data")

    if strict_hex:
        for label, value in (("PICC", picc), ("CMAC", cmac), ("ENC", enc)):
            if value and not validate_hex_string(value):
                errors.append(f"Invalid {label} hex format")
        for label, value in (("PICC", picc), ("ENC", enc)):
            if validate_hex_string(value) and len(value) % 32 != 0:
                errors.append(f"{label} data must be a multiple of 16 bytes")
        if validate_hex_string(cmac) and len(cmac) != CMAC_LENGTH * 2:
            errors.append(f"CMAC must be {CMAC_LENGTH} bytes")

    return not errors, errors

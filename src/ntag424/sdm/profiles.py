"""SDM profile registry.

A profile describes the byte layout of the plaintext PICC block and whether
encrypted file data is permitted. Four layouts are predefined; custom layouts
are built with :func:`create_custom_profile` and always validated.

Predefined layouts (16-byte block, data tag 0xC7 at offset 0):

    profile       UID  counter  file data  uid off/len  ctr off/len
    uidOnly       yes  no       no         1/7          -
    counterOnly   no   yes      no         -            1/3
    uidCounter    yes  yes      no         1/7          8/3
    full          yes  yes      yes        1/7          8/3

Example:
    >>> profile = get_profile("uidCounter")
    >>> profile.counter_offset
    8
    >>> custom = create_custom_profile(include_uid=True, include_counter=False)
    >>> validate_profile(custom).is_valid
    True
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from ntag424.sdm.exceptions import SDMProfileError, ValidationError
from ntag424.sdm.models import Operation, ProfileValidation, SDMProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "uidCounter"
CUSTOM_PROFILE_NAME = "custom"

PROFILES: Dict[str, SDMProfile] = {
    "uidOnly": SDMProfile(
        name="uidOnly",
        include_uid=True,
        include_counter=False,
        include_file_data=False,
    ),
    "counterOnly": SDMProfile(
        name="counterOnly",
        include_uid=False,
        include_counter=True,
        include_file_data=False,
        counter_offset=1,
    ),
    "uidCounter": SDMProfile(
        name="uidCounter",
        include_uid=True,
        include_counter=True,
        include_file_data=False,
    ),
    "full": SDMProfile(
        name="full",
        include_uid=True,
        include_counter=True,
        include_file_data=True,
    ),
}

# Accepted spellings for custom profile fields
_FIELD_ALIASES = {
    "name": "name",
    "includeUID": "include_uid",
    "includeUid": "include_uid",
    "includeCounter": "include_counter",
    "includeFileData": "include_file_data",
    "piccDataLength": "picc_data_length",
    "uidOffset": "uid_offset",
    "uidLength": "uid_length",
    "counterOffset": "counter_offset",
    "counterLength": "counter_length",
    "encFileDataLength": "enc_file_data_length",
}
_CUSTOM_FIELDS = frozenset(SDMProfile.__dataclass_fields__)
_INT_FIELDS = (
    "picc_data_length",
    "uid_offset",
    "uid_length",
    "counter_offset",
    "counter_length",
    "enc_file_data_length",
)


def available_profiles() -> List[str]:
    """Names of the predefined profiles."""
    return list(PROFILES)


def get_profile(name: str) -> SDMProfile:
    """Look up a predefined profile.

    Raises:
        SDMProfileError: If the name is unknown.
    """
    try:
        return PROFILES[name]
    except (KeyError, TypeError):
        raise SDMProfileError(
            f"Unknown SDM profile: {name!r}. "
            f"Available profiles: {', '.join(available_profiles())}",
            profile=str(name),
        ) from None


def create_custom_profile(
    config: Optional[Mapping[str, Any]] = None, **fields: Any
) -> SDMProfile:
    """Build and validate a custom profile.

    Only the documented layout fields are accepted, in snake_case or the
    camelCase wire spelling (``includeUID``, ``uidOffset``...). Omitted
    fields default to the standard 16-byte layout.

    Args:
        config: Profile fields as a mapping.
        **fields: Profile fields as keyword arguments (override ``config``).

    Returns:
        Validated profile.

    Raises:
        SDMProfileError: If a field is unknown or the layout is invalid.
    """
    raw: Dict[str, Any] = dict(config or {})
    raw.update(fields)

    values: Dict[str, Any] = {
        "name": CUSTOM_PROFILE_NAME,
        "include_uid": False,
        "include_counter": False,
        "include_file_data": False,
    }
    unknown = []
    for key, value in raw.items():
        name = _FIELD_ALIASES.get(key, key)
        if name not in _CUSTOM_FIELDS:
            unknown.append(key)
            continue
        values[name] = value
    if unknown:
        raise SDMProfileError(
            f"Unknown custom profile fields: {', '.join(sorted(unknown))}",
            profile=str(values["name"]),
            operation="createCustomProfile",
        )

    for name in ("include_uid", "include_counter", "include_file_data"):
        if not isinstance(values[name], bool):
            raise SDMProfileError(
                f"Custom profile field {name} must be a boolean",
                profile=str(values["name"]),
                operation="createCustomProfile",
            )
    for name in _INT_FIELDS:
        if name in values and (isinstance(values[name], bool) or not isinstance(values[name], int)):
            raise SDMProfileError(
                f"Custom profile field {name} must be an integer",
                profile=str(values["name"]),
                operation="createCustomProfile",
            )

    profile = SDMProfile(**values)
    validation = validate_profile(profile)
    if not validation.is_valid:
        raise SDMProfileError(
            f"Invalid SDM profile: {'; '.join(validation.errors)}",
            profile=profile.name,
            operation="createCustomProfile",
        )

    logger.debug(f"Custom SDM profile created: {profile.to_dict()}")
    return profile


def validate_profile(profile: SDMProfile) -> ProfileValidation:
    """Check a profile against the layout rules.

    Validation Rules:
        - picc_data_length >= 1
        - included regions start at >= 0, are >= 1 byte long and end within
          the block
        - UID and counter regions do not overlap
        - enc_file_data_length >= 1 when file data is included

    Returns:
        Validation result with every rule violation listed.
    """
    errors: List[str] = []

    if profile.picc_data_length < 1:
        errors.append("piccDataLength must be at least 1")

    for region, included, offset, length in (
        ("UID", profile.include_uid, profile.uid_offset, profile.uid_length),
        ("Counter", profile.include_counter, profile.counter_offset, profile.counter_length),
    ):
        if not included:
            continue
        if offset < 0:
            errors.append(f"{region} offset must be non-negative")
        if length < 1:
            errors.append(f"{region} length must be at least 1")
        if offset + length > profile.picc_data_length:
            errors.append(f"{region} region exceeds piccDataLength")

    if profile.include_uid and profile.include_counter:
        uid_end = profile.uid_offset + profile.uid_length
        counter_end = profile.counter_offset + profile.counter_length
        if profile.uid_offset < counter_end and profile.counter_offset < uid_end:
            errors.append("UID and counter regions overlap")

    if profile.include_file_data and profile.enc_file_data_length < 1:
        errors.append("encFileDataLength must be at least 1")

    return ProfileValidation(is_valid=not errors, errors=errors)


def resolve_profile(profile: Union[str, SDMProfile, Mapping[str, Any]]) -> SDMProfile:
    """Resolve a profile name, profile object or custom field mapping.

    Raises:
        SDMProfileError: If the profile is unknown or invalid.
    """
    if isinstance(profile, SDMProfile):
        validation = validate_profile(profile)
        if not validation.is_valid:
            raise SDMProfileError(
                f"Invalid SDM profile: {'; '.join(validation.errors)}",
                profile=profile.name,
            )
        return profile
    if isinstance(profile, str):
        return get_profile(profile)
    if isinstance(profile, Mapping):
        return create_custom_profile(profile)
    raise SDMProfileError(
        f"SDM profile must be a name, SDMProfile or mapping, got {type(profile).__name__}",
        profile=str(profile),
    )


def validate_operation_with_profile(
    operation: Union[str, Operation],
    profile: SDMProfile,
    data: Mapping[str, Any],
) -> None:
    """Check that an operation's data is compatible with a profile.

    Args:
        operation: ``"encrypt"`` or ``"decrypt"``.
        profile: Resolved profile.
        data: For encrypt: ``uid``, ``counter``, ``file_data``.
            For decrypt: ``picc``, ``enc``, ``cmac``.

    Raises:
        SDMProfileError: If file data is supplied to a profile without file
            data support, or the operation is unknown.
        ValidationError: If a field the operation requires is missing.
    """
    try:
        operation = Operation(operation)
    except ValueError:
        raise SDMProfileError(
            f"Unknown operation: {operation!r}",
            profile=profile.name,
            operation=str(operation),
        ) from None

    if operation is Operation.ENCRYPT:
        if data.get("file_data") is not None and not profile.include_file_data:
            raise SDMProfileError(
                f"Profile '{profile.name}' does not support file data encryption. "
                "Use 'full' profile instead.",
                profile=profile.name,
                operation=operation.value,
            )
        if profile.include_uid and data.get("uid") is None:
            raise ValidationError(
                f"Profile '{profile.name}' requires a UID", "uid", None, "7 bytes"
            )
        if profile.include_counter and data.get("counter") is None:
            raise ValidationError(
                f"Profile '{profile.name}' requires a counter",
                "counter",
                None,
                "0 to 16777215",
            )
        return

    if data.get("enc") and not profile.include_file_data:
        raise SDMProfileError(
            f"Profile '{profile.name}' does not support encrypted file data. "
            "Use 'full' profile instead.",
            profile=profile.name,
            operation=operation.value,
        )
    if not data.get("picc"):
        raise ValidationError("Missing PICC data", "picc", None, "hex string")
    if not data.get("cmac"):
        raise ValidationError("Missing CMAC data", "cmac", None, "hex string")

"""Codec configuration.

:class:`CodecOptions` holds everything an :class:`~ntag424.sdm.codec.Encoder`
or :class:`~ntag424.sdm.codec.Decoder` needs besides the master key. It is
immutable and validated once, at construction.

Example:
    >>> options = CodecOptions.from_dict({
    ...     "keyDerivationMethod": "hkdf",
    ...     "sdmProfile": "full",
    ... })
    >>> options.key_derivation_method
    <DerivationMethod.HKDF: 'hkdf'>
"""

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Union

from ntag424.sdm.crypto import AES_KEY_SIZE
from ntag424.sdm.exceptions import KeyDerivationError, ValidationError
from ntag424.sdm.key_derivation import DerivationOptions
from ntag424.sdm.models import DerivationMethod, SDMProfile
from ntag424.sdm.profiles import resolve_profile

ENV_PREFIX = "NTAG424_"

_OPTION_ALIASES = {
    "keyDerivationMethod": "key_derivation_method",
    "method": "key_derivation_method",
    "sdmProfile": "sdm_profile",
    "profile": "sdm_profile",
    "validateCMAC": "validate_cmac",
    "validateCmac": "validate_cmac",
    "strictValidation": "strict_validation",
    "derivationOptions": "derivation",
}

_DERIVATION_ALIASES = {
    "keyLength": "key_length",
    "svLength": "sv_length",
    "useCMAC": "use_cmac",
    "useCmac": "use_cmac",
    "encLabel": "enc_label",
    "macLabel": "mac_label",
    "algorithm": "hash_algorithm",
    "hashAlgorithm": "hash_algorithm",
    "salt": "hkdf_salt",
    "hkdfSalt": "hkdf_salt",
    "info": "hkdf_info",
    "hkdfInfo": "hkdf_info",
    "outputLength": "output_length",
    "length": "output_length",
    "saltPrefix": "salt_prefix",
}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _derivation_from(value: Any) -> DerivationOptions:
    if isinstance(value, DerivationOptions):
        return value
    if isinstance(value, Mapping):
        return DerivationOptions.from_dict(
            {_DERIVATION_ALIASES.get(k, k): v for k, v in value.items()}
        )
    raise ValidationError(
        "Derivation options must be a mapping",
        "derivation",
        type(value).__name__,
        "mapping",
    )


@dataclass(frozen=True)
class CodecOptions:
    """Encoder/decoder configuration.

    Attributes:
        key_derivation_method: Session key derivation strategy.
        sdm_profile: Profile name, profile object or None. When None the
            decoder uses ``uidCounter`` and the encoder picks ``full`` for
            calls with file data and ``uidCounter`` otherwise.
        validate_cmac: Verify the CMAC while decoding.
        strict_validation: Check field hex format and lengths before decoding.
        derivation: Parameters for the derivation strategies.
    """

    key_derivation_method: DerivationMethod = DerivationMethod.NTAG424_OFFICIAL
    sdm_profile: Optional[Union[str, SDMProfile]] = None
    validate_cmac: bool = True
    strict_validation: bool = False
    derivation: DerivationOptions = field(default_factory=DerivationOptions)

    def __post_init__(self) -> None:
        try:
            method = DerivationMethod.parse(self.key_derivation_method)
        except ValueError as e:
            raise ValidationError(
                str(e),
                "key_derivation_method",
                self.key_derivation_method,
                [m.value for m in DerivationMethod],
            ) from None
        object.__setattr__(self, "key_derivation_method", method)
        if isinstance(self.sdm_profile, Mapping):
            object.__setattr__(self, "sdm_profile", resolve_profile(self.sdm_profile))
        self.validate()

    def validate(self) -> None:
        """Validate option values.

        Raises:
            ValidationError: If a flag is not a boolean.
            KeyDerivationError: If the derivation parameters are out of range.
            SDMProfileError: If the profile is unknown or invalid.
        """
        for name in ("validate_cmac", "strict_validation"):
            if not isinstance(getattr(self, name), bool):
                raise ValidationError(
                    f"{name} must be a boolean", name, getattr(self, name), "bool"
                )
        if not isinstance(self.derivation, DerivationOptions):
            raise KeyDerivationError(
                "derivation must be DerivationOptions",
                "derivation",
                type(self.derivation).__name__,
            )
        self.derivation.validate()
        # The codec encrypts and MACs with AES-128 session keys
        if self.derivation.key_length != AES_KEY_SIZE:
            raise KeyDerivationError(
                "Codec session keys must be 16 bytes",
                "key_length",
                self.derivation.key_length,
                AES_KEY_SIZE,
            )
        if self.derivation.output_length != 2 * AES_KEY_SIZE:
            raise KeyDerivationError(
                "Codec derivation output must be 32 bytes (two 16-byte keys)",
                "output_length",
                self.derivation.output_length,
                2 * AES_KEY_SIZE,
            )
        if self.sdm_profile is not None:
            resolve_profile(self.sdm_profile)

    def profile_for(self, has_file_data: bool = False) -> SDMProfile:
        """Resolve the profile to use for one call."""
        if self.sdm_profile is not None:
            return resolve_profile(self.sdm_profile)
        return resolve_profile("full" if has_file_data else "uidCounter")

    def merged(self, overrides: Optional[Mapping[str, Any]] = None) -> "CodecOptions":
        """Return a copy with per-call overrides applied."""
        if not overrides:
            return self
        return replace(self, **_normalize(overrides))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CodecOptions":
        """Create options from a mapping with camelCase or snake_case keys.

        Raises:
            ValidationError: If the mapping contains unknown keys.
        """
        return cls(**_normalize(data))

    @classmethod
    def from_env(cls) -> "CodecOptions":
        """Create options from environment variables.

        Environment Variables:
            NTAG424_KEY_DERIVATION_METHOD: Derivation method (default: ntag424Official)
            NTAG424_SDM_PROFILE: Profile name (default: automatic)
            NTAG424_VALIDATE_CMAC: Verify CMAC on decode (default: true)
            NTAG424_STRICT_VALIDATION: Strict input checks (default: false)
            NTAG424_HASH_ALGORITHM: Hash for HKDF/PBKDF2/simple hash (default: sha256)
            NTAG424_PBKDF2_ITERATIONS: PBKDF2 iterations (default: 10000)
        """
        derivation = DerivationOptions(
            hash_algorithm=os.getenv(f"{ENV_PREFIX}HASH_ALGORITHM", "sha256").lower(),
            iterations=int(os.getenv(f"{ENV_PREFIX}PBKDF2_ITERATIONS", "10000")),
        )
        return cls(
            key_derivation_method=os.getenv(
                f"{ENV_PREFIX}KEY_DERIVATION_METHOD", DerivationMethod.NTAG424_OFFICIAL.value
            ),
            sdm_profile=os.getenv(f"{ENV_PREFIX}SDM_PROFILE") or None,
            validate_cmac=_env_bool(f"{ENV_PREFIX}VALIDATE_CMAC", True),
            strict_validation=_env_bool(f"{ENV_PREFIX}STRICT_VALIDATION", False),
            derivation=derivation,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        profile = self.sdm_profile
        return {
            "key_derivation_method": self.key_derivation_method.value,
            "sdm_profile": profile.name if isinstance(profile, SDMProfile) else profile,
            "validate_cmac": self.validate_cmac,
            "strict_validation": self.strict_validation,
        }


def _normalize(data: Mapping[str, Any]) -> Dict[str, Any]:
    known = set(CodecOptions.__dataclass_fields__)
    values: Dict[str, Any] = {}
    unknown = []
    for key, value in data.items():
        name = _OPTION_ALIASES.get(key, key)
        if name not in known:
            unknown.append(key)
            continue
        values[name] = value
    if unknown:
        raise ValidationError(
            f"Unknown codec options: {', '.join(sorted(unknown))}",
            "options",
            sorted(unknown),
            sorted(known),
        )
    if "derivation" in values:
        values["derivation"] = _derivation_from(values["derivation"])
    return values

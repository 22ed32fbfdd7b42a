"""Session key derivation for NTAG424 SDM.

This module turns a master key plus a diversification UID and counter into
an (encryption key, MAC key) pair. Four strategies are supported, selected
by :class:`~ntag424.sdm.models.DerivationMethod`:

- ``NTAG424_OFFICIAL``: AES-CMAC over the SV1/SV2 session vectors
  (``3CC300010080`` / ``3CC300010081`` labels), or AES-ECB when CMAC is
  disabled.
- ``HKDF``: RFC 5869 HKDF, 32 bytes split into two 16-byte keys.
- ``PBKDF2``: RFC 2898 PBKDF2, 32 bytes split into two 16-byte keys.
- ``SIMPLE_HASH``: ``Hash(master || uid || ctr || "ENC"/"MAC")``. Fastest
  and weakest; only acceptable when the threat model tolerates it.

Encoder and decoder must agree on the method. A mismatch is not detected
here; it shows up downstream as a structural or CMAC failure.

Example:
    ```python
    from ntag424.sdm import DerivationMethod, derive_session_keys

    with derive_session_keys(
        DerivationMethod.NTAG424_OFFICIAL,
        bytes.fromhex("00112233445566778899AABBCCDDEEFF"),
        bytes(7),
        bytes(3),
    ) as keys:
        print(keys.enc_key.hex())
    ```
"""

import hashlib
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ntag424.sdm import crypto
from ntag424.sdm.exceptions import KeyDerivationError, SecurityError
from ntag424.sdm.models import (
    COUNTER_LENGTH,
    MASTER_KEY_LENGTH,
    UID_LENGTH,
    DerivationMethod,
)
from ntag424.sdm.secure_memory import SecureBuffer, SessionKeyPair

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SV1_LABEL = "3CC300010080"  # Session vector label for the encryption key
SV2_LABEL = "3CC300010081"  # Session vector label for the MAC key
DEFAULT_SV_LENGTH = 32
MIN_SV_LENGTH = 16

HKDF_INFO = "NTAG424-SESSION-KEYS"
PBKDF2_SALT_PREFIX = "NTAG424"
PBKDF2_MIN_ITERATIONS = 1000
PBKDF2_DEFAULT_ITERATIONS = 10000

# Zero-vector bootstrap inputs used by the codec
ZERO_UID = bytes(UID_LENGTH)
ZERO_COUNTER = bytes(COUNTER_LENGTH)

_KDF_HASHES = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}
_PBKDF2_HASHES = dict(_KDF_HASHES, sha1=hashes.SHA1)
_SIMPLE_HASHES = ("sha256", "sha512", "sha1")


# =============================================================================
# Options
# =============================================================================


@dataclass(frozen=True)
class DerivationOptions:
    """Tunable parameters for the derivation strategies.

    Attributes:
        key_length: Session key length for NTAG424 official and simple hash.
        sv_length: Session vector length for NTAG424 official.
        use_cmac: Derive with AES-CMAC (True) or AES-ECB (False).
        enc_label: SV1 label as hex.
        mac_label: SV2 label as hex.
        hash_algorithm: Hash for HKDF, PBKDF2 and simple hash.
        hkdf_salt: HKDF salt override (defaults to uid || counter).
        hkdf_info: HKDF info string.
        output_length: Total HKDF/PBKDF2 output, split into two halves.
        iterations: PBKDF2 iteration count.
        salt_prefix: PBKDF2 salt prefix.
    """

    key_length: int = 16
    sv_length: int = DEFAULT_SV_LENGTH
    use_cmac: bool = True
    enc_label: str = SV1_LABEL
    mac_label: str = SV2_LABEL
    hash_algorithm: str = "sha256"
    hkdf_salt: Optional[bytes] = None
    hkdf_info: str = HKDF_INFO
    output_length: int = 32
    iterations: int = PBKDF2_DEFAULT_ITERATIONS
    salt_prefix: str = PBKDF2_SALT_PREFIX

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DerivationOptions":
        """Create options from a mapping.

        Raises:
            KeyDerivationError: If the mapping contains unknown keys.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise KeyDerivationError(
                f"Unknown derivation options: {', '.join(unknown)}",
                "derivation",
                unknown,
                sorted(known),
            )
        values: Dict[str, Any] = dict(data)
        if isinstance(values.get("hkdf_salt"), str):
            try:
                values["hkdf_salt"] = bytes.fromhex(values["hkdf_salt"])
            except ValueError:
                raise KeyDerivationError(
                    "HKDF salt must be a hex string", "hkdf_salt", values["hkdf_salt"]
                ) from None
        return cls(**values)

    def validate(self) -> None:
        """Validate parameter ranges.

        Raises:
            KeyDerivationError: If a parameter is out of range.
        """
        if not 1 <= self.key_length <= 16:
            raise KeyDerivationError(
                "Key length must be between 1 and 16 bytes",
                "key_length",
                self.key_length,
                "1..16",
            )
        if self.sv_length < MIN_SV_LENGTH:
            raise KeyDerivationError(
                "SV length must be at least 16 bytes",
                "sv_length",
                self.sv_length,
                f">={MIN_SV_LENGTH}",
            )
        for name in ("enc_label", "mac_label"):
            label = getattr(self, name)
            try:
                bytes.fromhex(label)
            except ValueError:
                raise KeyDerivationError(
                    "Session vector label must be a hex string", name, label
                ) from None
        if self.iterations < PBKDF2_MIN_ITERATIONS:
            raise KeyDerivationError(
                "Iterations must be at least 1000 for security",
                "iterations",
                self.iterations,
                f">={PBKDF2_MIN_ITERATIONS}",
            )
        if self.output_length < 2 or self.output_length % 2 != 0:
            raise KeyDerivationError(
                "Output length must be a positive even number of bytes",
                "output_length",
                self.output_length,
                "even, >=2",
            )
        if self.hash_algorithm not in _PBKDF2_HASHES:
            raise KeyDerivationError(
                f"Unsupported hash algorithm: {self.hash_algorithm}",
                "hash_algorithm",
                self.hash_algorithm,
                sorted(_PBKDF2_HASHES),
            )


DEFAULT_OPTIONS = DerivationOptions()


# =============================================================================
# Session Vectors
# =============================================================================


def build_session_vector(
    label: str,
    uid: bytes,
    counter: bytes,
    sv_length: int = DEFAULT_SV_LENGTH,
) -> bytes:
    """Build an NTAG424 session vector.

    Layout: ``label || uid || counter || 00...00`` truncated or zero-padded
    to ``sv_length`` bytes.

    Args:
        label: Label as hex (``3CC300010080`` for SV1).
        uid: Diversification UID.
        counter: Diversification counter.
        sv_length: Vector length in bytes (>= 16).

    Returns:
        Session vector bytes.

    Raises:
        KeyDerivationError: If ``sv_length`` is below 16.
    """
    if sv_length < MIN_SV_LENGTH:
        raise KeyDerivationError(
            "SV length must be at least 16 bytes",
            "sv_length",
            sv_length,
            f">={MIN_SV_LENGTH}",
        )

    vector = bytes.fromhex(label) + bytes(uid) + bytes(counter)
    return vector[:sv_length].ljust(sv_length, b"\x00")


# =============================================================================
# Strategies
# =============================================================================


def _ntag424_official(
    master_key: bytes, uid: bytes, counter: bytes, options: DerivationOptions
) -> SessionKeyPair:
    sv1 = build_session_vector(options.enc_label, uid, counter, options.sv_length)
    sv2 = build_session_vector(options.mac_label, uid, counter, options.sv_length)

    if options.use_cmac:
        enc_key = crypto.aes_cmac(master_key, sv1)
        mac_key = crypto.aes_cmac(master_key, sv2)
    else:
        enc_key = crypto.ecb_encrypt(master_key, sv1[:16])
        mac_key = crypto.ecb_encrypt(master_key, sv2[:16])

    return SessionKeyPair(
        enc_key[: options.key_length],
        mac_key[: options.key_length],
        DerivationMethod.NTAG424_OFFICIAL,
    )


def _hkdf(
    master_key: bytes, uid: bytes, counter: bytes, options: DerivationOptions
) -> SessionKeyPair:
    if options.hash_algorithm not in _KDF_HASHES:
        raise KeyDerivationError(
            f"Unsupported hash algorithm for HKDF: {options.hash_algorithm}",
            "hash_algorithm",
            options.hash_algorithm,
            sorted(_KDF_HASHES),
        )

    salt = options.hkdf_salt if options.hkdf_salt is not None else bytes(uid) + bytes(counter)
    hkdf = HKDF(
        algorithm=_KDF_HASHES[options.hash_algorithm](),
        length=options.output_length,
        salt=salt,
        info=options.hkdf_info.encode("utf-8"),
        backend=default_backend(),
    )

    with SecureBuffer.from_bytes(hkdf.derive(master_key)) as derived:
        half = options.output_length // 2
        return SessionKeyPair(
            bytes(derived.data[:half]), bytes(derived.data[half:]), DerivationMethod.HKDF
        )


def _pbkdf2(
    master_key: bytes, uid: bytes, counter: bytes, options: DerivationOptions
) -> SessionKeyPair:
    salt = options.salt_prefix.encode("utf-8") + bytes(uid) + bytes(counter)
    kdf = PBKDF2HMAC(
        algorithm=_PBKDF2_HASHES[options.hash_algorithm](),
        length=options.output_length,
        salt=salt,
        iterations=options.iterations,
        backend=default_backend(),
    )

    with SecureBuffer.from_bytes(kdf.derive(master_key)) as derived:
        half = options.output_length // 2
        return SessionKeyPair(
            bytes(derived.data[:half]), bytes(derived.data[half:]), DerivationMethod.PBKDF2
        )


def _simple_hash(
    master_key: bytes, uid: bytes, counter: bytes, options: DerivationOptions
) -> SessionKeyPair:
    if options.hash_algorithm not in _SIMPLE_HASHES:
        raise KeyDerivationError(
            f"Algorithm must be one of: {', '.join(_SIMPLE_HASHES)}",
            "hash_algorithm",
            options.hash_algorithm,
            list(_SIMPLE_HASHES),
        )

    seed = bytes(master_key) + bytes(uid) + bytes(counter)
    enc_hash = hashlib.new(options.hash_algorithm, seed + b"ENC").digest()
    mac_hash = hashlib.new(options.hash_algorithm, seed + b"MAC").digest()

    return SessionKeyPair(
        enc_hash[: options.key_length],
        mac_hash[: options.key_length],
        DerivationMethod.SIMPLE_HASH,
    )


def derive_session_keys(
    method: DerivationMethod,
    master_key: bytes,
    divers_uid: bytes = ZERO_UID,
    divers_counter: bytes = ZERO_COUNTER,
    options: Optional[DerivationOptions] = None,
) -> SessionKeyPair:
    """Derive an encryption/MAC session key pair.

    Args:
        method: Derivation strategy.
        master_key: Master key (16 bytes).
        divers_uid: Diversification UID (7 bytes).
        divers_counter: Diversification counter (3 bytes).
        options: Strategy parameters (defaults apply when omitted).

    Returns:
        Session key pair. Use it as a context manager so the keys are wiped.

    Raises:
        KeyDerivationError: If inputs are malformed or parameters out of range.
        SecurityError: If the cryptographic library fails unexpectedly.
    """
    options = options or DEFAULT_OPTIONS
    try:
        method = DerivationMethod.parse(method)
    except ValueError as e:
        raise KeyDerivationError(str(e), "method", method) from None

    if len(master_key) != MASTER_KEY_LENGTH:
        raise KeyDerivationError(
            "Master key must be 16 bytes",
            "master_key",
            f"{len(master_key)} bytes",
            "16 bytes",
        )
    if len(divers_uid) != UID_LENGTH:
        raise KeyDerivationError(
            "Diversification UID must be 7 bytes",
            "divers_uid",
            f"{len(divers_uid)} bytes",
            "7 bytes",
        )
    if len(divers_counter) != COUNTER_LENGTH:
        raise KeyDerivationError(
            "Diversification counter must be 3 bytes",
            "divers_counter",
            f"{len(divers_counter)} bytes",
            "3 bytes",
        )
    options.validate()

    try:
        if method is DerivationMethod.NTAG424_OFFICIAL:
            keys = _ntag424_official(master_key, divers_uid, divers_counter, options)
        elif method is DerivationMethod.HKDF:
            keys = _hkdf(master_key, divers_uid, divers_counter, options)
        elif method is DerivationMethod.PBKDF2:
            keys = _pbkdf2(master_key, divers_uid, divers_counter, options)
        elif method is DerivationMethod.SIMPLE_HASH:
            keys = _simple_hash(master_key, divers_uid, divers_counter, options)
        else:
            raise KeyDerivationError(
                f"Unknown key derivation method: {method}", "method", method
            )
    except KeyDerivationError:
        raise
    except Exception as e:
        raise SecurityError(
            f"{method.label} key derivation failed: {e}",
            "KEY_DERIVATION_FAILURE",
            method=method.value,
        ) from e

    logger.debug(f"Session keys derived ({method.value})")
    return keys

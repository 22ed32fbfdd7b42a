"""NTAG424 SDM encoder and decoder.

Both directions use the zero-vector bootstrap: session keys are derived from
the master key with an all-zero UID (7 bytes) and counter (3 bytes), never
from the tag's own identity. Every tag under one master key therefore shares
one pair of session keys; authenticity rests on the master key alone.

Encoding raises on failure. Decoding never raises; failures come back as a
:class:`~ntag424.sdm.models.DecodedMessage` with ``success=False``.

Example:
    ```python
    from ntag424.sdm import Decoder, encode

    master_key = "00112233445566778899AABBCCDDEEFF"
    encoded = encode(master_key, "04AABBCCDDEE80", 42)

    decoder = Decoder(master_key)
    result = decoder.decrypt(encoded.generate_url())
    if result.success and result.cmac_valid:
        print(result.uid, result.read_counter)
    ```
"""

import logging
import time
from typing import Any, Dict, Mapping, Optional, Union

from ntag424.sdm import crypto
from ntag424.sdm.config import CodecOptions
from ntag424.sdm.exceptions import (
    REDACTED,
    DecryptionError,
    EncryptionError,
    KeyDerivationError,
    NTAG424Error,
    SDMProfileError,
    ValidationError,
)
from ntag424.sdm.key_derivation import ZERO_COUNTER, ZERO_UID, derive_session_keys
from ntag424.sdm.models import (
    CMAC_LENGTH,
    COUNTER_LENGTH,
    MASTER_KEY_LENGTH,
    MAX_COUNTER,
    UID_LENGTH,
    UID_PREFIX,
    DecodedMessage,
    EncodeResult,
    EncryptedMessage,
    Operation,
    SDMProfile,
    utc_now,
)
from ntag424.sdm.parser import hex_to_bytes, normalize_input, validate_hex_string, validate_parsed_data
from ntag424.sdm.picc import build_picc_block, parse_picc_block, validate_picc_record
from ntag424.sdm.profiles import validate_operation_with_profile
from ntag424.sdm.secure_memory import SecureBuffer, generate_random_key, timing_safe_equal

logger = logging.getLogger(__name__)

OptionsLike = Union[CodecOptions, Mapping[str, Any], None]


# =============================================================================
# Input Conversion
# =============================================================================


def _coerce_options(options: OptionsLike, base: Optional[CodecOptions] = None) -> CodecOptions:
    if isinstance(options, CodecOptions):
        return options
    base = base or CodecOptions()
    return base.merged(options)


def _parse_master_key(master_key: Any) -> bytes:
    """Convert a 32-char hex string or 16 bytes into key bytes."""
    if isinstance(master_key, (bytes, bytearray)):
        if len(master_key) != MASTER_KEY_LENGTH:
            raise ValidationError(
                "Master key must be 16 bytes",
                "master_key",
                f"{len(master_key)} bytes",
                "16 bytes",
            )
        return bytes(master_key)

    if not isinstance(master_key, str) or len(master_key) != MASTER_KEY_LENGTH * 2:
        length = f"{len(master_key)} characters" if isinstance(master_key, str) else None
        raise ValidationError(
            "Master key must be a 32-character hex string",
            "master_key",
            length,
            "32 hex characters",
        )
    if not validate_hex_string(master_key):
        raise ValidationError(
            "Master key contains invalid hex characters",
            "master_key",
            master_key,
            "32 hex characters",
        )
    return bytes.fromhex(master_key)


def _parse_uid(uid: Any) -> bytes:
    """Convert a 14-char hex string or 7 bytes into a UID starting with 04."""
    if isinstance(uid, (bytes, bytearray)):
        if len(uid) != UID_LENGTH:
            raise ValidationError(
                "UID must be exactly 7 bytes", "uid", f"{len(uid)} bytes", "7 bytes"
            )
        value = bytes(uid)
    elif isinstance(uid, str):
        if len(uid) != UID_LENGTH * 2:
            raise ValidationError(
                "UID hex string must be exactly 14 characters (7 bytes)",
                "uid",
                f"{len(uid)} characters",
                "14 characters",
            )
        if not validate_hex_string(uid):
            raise ValidationError("UID contains invalid hex characters", "uid", uid)
        value = bytes.fromhex(uid)
    else:
        raise ValidationError(
            "UID must be 7 bytes or a 14-character hex string",
            "uid",
            type(uid).__name__,
        )

    if value[0] != UID_PREFIX:
        raise ValidationError(
            "UID must start with 04 (NFC Type A)",
            "uid",
            value.hex().upper(),
            "04XXXXXXXXXXXX",
        )
    return value


def _parse_counter(counter: Any) -> int:
    """Convert an int or 3 big-endian bytes into a read counter value."""
    if isinstance(counter, (bytes, bytearray)):
        if len(counter) != COUNTER_LENGTH:
            raise ValidationError(
                "Counter must be exactly 3 bytes",
                "counter",
                f"{len(counter)} bytes",
                "3 bytes",
            )
        return int.from_bytes(counter, "big")

    if isinstance(counter, bool) or not isinstance(counter, int):
        raise ValidationError(
            "Counter must be an integer or 3 bytes", "counter", type(counter).__name__
        )
    if not 0 <= counter <= MAX_COUNTER:
        raise ValidationError(
            "Counter must be an integer between 0 and 16777215 (2^24 - 1)",
            "counter",
            counter,
            "0 to 16777215",
        )
    return counter


def _prepare_file_data(file_data: Union[str, bytes]) -> bytes:
    if isinstance(file_data, str):
        file_data = file_data.encode("utf-8")
    elif not isinstance(file_data, (bytes, bytearray)):
        raise ValidationError(
            "File data must be a string or bytes", "file_data", type(file_data).__name__
        )
    return crypto.pad_zero(bytes(file_data))


def _extract_file_data(decrypted: bytes) -> Optional[str]:
    """Decode decrypted file data as UTF-8, falling back to hex."""
    stripped = decrypted.rstrip(b"\x00")
    try:
        text = stripped.decode("utf-8")
    except UnicodeDecodeError:
        return stripped.hex().upper()
    return text or None


def generate_master_key() -> str:
    """Generate a random master key as 32 upper-case hex characters."""
    return generate_random_key(MASTER_KEY_LENGTH).hex().upper()


# =============================================================================
# Encoder
# =============================================================================


class Encoder:
    """Encrypts UID, counter and optional file data into SDM wire form.

    The encoder is stateless apart from its default options; the master key
    is passed per call and wiped after use.
    """

    def __init__(self, options: OptionsLike = None):
        self.options = _coerce_options(options)

    def encrypt(
        self,
        master_key: Union[str, bytes],
        uid: Union[str, bytes],
        counter: Union[int, bytes],
        file_data: Optional[Union[str, bytes]] = None,
        options: OptionsLike = None,
    ) -> EncodeResult:
        """Encrypt tag data.

        Args:
            master_key: 32-character hex string or 16 bytes.
            uid: 14-character hex string or 7 bytes, starting with 04.
            counter: Integer in [0, 16777215] or 3 big-endian bytes.
            file_data: Optional UTF-8 string or bytes (requires file data profile).
                Empty data is treated as no file data.
            options: Per-call overrides (CodecOptions or mapping).

        Returns:
            Encode result with the wire form and a redacted input summary.

        Raises:
            ValidationError: If an input is malformed.
            SDMProfileError: If the profile does not permit the inputs.
            EncryptionError: If an encoding step fails.
        """
        key_bytes = _parse_master_key(master_key)
        if isinstance(file_data, (str, bytes, bytearray)) and not file_data:
            file_data = None
        uid_bytes = _parse_uid(uid)
        counter_value = _parse_counter(counter)
        opts = _coerce_options(options, self.options)

        profile = opts.profile_for(has_file_data=file_data is not None)
        validate_operation_with_profile(
            Operation.ENCRYPT,
            profile,
            {"uid": uid_bytes, "counter": counter_value, "file_data": file_data},
        )
        file_block = _prepare_file_data(file_data) if file_data is not None else None
        picc_block = build_picc_block(profile, uid_bytes, counter_value)

        try:
            with SecureBuffer.from_bytes(key_bytes) as master, derive_session_keys(
                opts.key_derivation_method,
                bytes(master.data),
                ZERO_UID,
                ZERO_COUNTER,
                opts.derivation,
            ) as keys:
                enc_key = bytes(keys.enc_key)
                picc_cipher = crypto.cbc_encrypt(enc_key, picc_block)
                enc_cipher = crypto.cbc_encrypt(enc_key, file_block) if file_block else b""
                cmac = crypto.aes_cmac(bytes(keys.mac_key), picc_cipher + enc_cipher)[
                    :CMAC_LENGTH
                ]
        except (ValidationError, SDMProfileError, EncryptionError):
            raise
        except NTAG424Error as e:
            raise EncryptionError(f"Encryption failed: {e}", "encrypt", cause=e.code) from e
        except Exception as e:
            raise EncryptionError(f"Encryption failed: {e}", "encrypt") from e

        encrypted = EncryptedMessage(
            picc=picc_cipher.hex().upper(),
            cmac=cmac.hex().upper(),
            enc=enc_cipher.hex().upper() if enc_cipher else None,
        )
        original: Dict[str, Any] = {
            "uid": uid_bytes.hex().upper(),
            "scan_count": counter_value,
            "master_key": REDACTED,
            "key_derivation_method": opts.key_derivation_method.value,
            "sdm_profile": profile.name,
        }
        if file_data is not None:
            original["file_data"] = (
                file_data if isinstance(file_data, str) else bytes(file_data).hex().upper()
            )

        logger.debug(
            f"Encoded SDM message: profile={profile.name}, "
            f"method={opts.key_derivation_method.value}, file_data={file_data is not None}"
        )
        return EncodeResult(
            original_data=original,
            encrypted=encrypted,
            metadata={
                "timestamp": utc_now(),
                "profile_used": profile.name,
                "has_file_data": file_data is not None,
            },
        )


# =============================================================================
# Decoder
# =============================================================================


class Decoder:
    """Decrypts and authenticates SDM messages under one master key.

    The master key is held in a :class:`SecureBuffer` until :meth:`close`
    is called (or the ``with`` block exits). Options are fixed at
    construction; :meth:`decrypt` accepts per-call overrides.

    Raises:
        ValidationError: If the master key or options are invalid.
        SDMProfileError: If the configured profile is invalid.
    """

    def __init__(self, master_key: Union[str, bytes], options: OptionsLike = None):
        self._master_key = SecureBuffer.from_bytes(_parse_master_key(master_key))
        self.options = _coerce_options(options)

    def decrypt(self, data: Any, overrides: Optional[Mapping[str, Any]] = None) -> DecodedMessage:
        """Decrypt an SDM message.

        Args:
            data: URL, query string, mapping or :class:`EncryptedMessage`.
            overrides: Per-call option overrides.

        Returns:
            Decoded message. Check both ``success`` and ``cmac_valid``.
        """
        started = time.perf_counter()
        try:
            options = self.options.merged(overrides)
            profile = options.profile_for()
            parsed = normalize_input(data)

            if options.strict_validation:
                is_valid, errors = validate_parsed_data(parsed, strict_hex=True)
                if not is_valid:
                    raise ValidationError(
                        f"Input validation failed: {'; '.join(errors)}",
                        "input",
                        errors,
                    )

            validate_operation_with_profile(Operation.DECRYPT, profile, parsed)
            result = self._decrypt_fields(parsed, profile, options)

        except NTAG424Error as e:
            duration_ms = round((time.perf_counter() - started) * 1000, 3)
            logger.warning(f"SDM decode failed ({e.code}): {e.message}")
            return DecodedMessage.failure(e, duration_ms=duration_ms)

        result.metadata["duration_ms"] = round((time.perf_counter() - started) * 1000, 3)
        return result

    def _decrypt_fields(
        self, data: Mapping[str, Any], profile: SDMProfile, options: CodecOptions
    ) -> DecodedMessage:
        picc = hex_to_bytes(data.get("picc"), "picc")
        enc = hex_to_bytes(data["enc"], "enc") if data.get("enc") else None
        cmac = hex_to_bytes(data.get("cmac"), "cmac")

        try:
            with derive_session_keys(
                options.key_derivation_method,
                bytes(self._master_key.data),
                ZERO_UID,
                ZERO_COUNTER,
                options.derivation,
            ) as keys:
                enc_key = bytes(keys.enc_key)
                decrypted_picc = crypto.cbc_decrypt(enc_key, picc)
                record = parse_picc_block(decrypted_picc, profile)
                validate_picc_record(record)

                decrypted_enc = None
                if enc is not None:
                    try:
                        decrypted_enc = crypto.cbc_decrypt(enc_key, enc)
                    except ValidationError as e:
                        raise DecryptionError(
                            f"File data decryption failed: {e}", "fileDecryption"
                        ) from e

                cmac_valid = False
                if options.validate_cmac:
                    expected = crypto.aes_cmac(bytes(keys.mac_key), picc + (enc or b""))
                    cmac_valid = timing_safe_equal(expected[: len(cmac)], cmac)
                    if not cmac_valid:
                        logger.warning(
                            f"CMAC verification failed (profile={profile.name}, "
                            f"method={options.key_derivation_method.value})"
                        )

                session_keys = keys.to_hex()
        except (DecryptionError, KeyDerivationError):
            raise
        except Exception as e:
            raise DecryptionError(
                f"Zero vector decryption failed: {e}", "decryption"
            ) from e

        return DecodedMessage(
            success=True,
            uid=record.uid.hex().upper() if record.uid is not None else None,
            read_counter=record.read_counter_int,
            data_tag=format(record.data_tag, "X"),
            file_data=_extract_file_data(decrypted_enc) if decrypted_enc is not None else None,
            cmac_valid=cmac_valid,
            session_keys=session_keys,
            raw_decrypted={
                "picc": decrypted_picc.hex().upper(),
                "enc": decrypted_enc.hex().upper() if decrypted_enc is not None else None,
            },
            picc_info=record,
            counter_hint=data.get("counter"),
            metadata={
                "timestamp": utc_now(),
                "profile_used": profile.name,
                "key_derivation_method": options.key_derivation_method.value,
                "cmac_checked": options.validate_cmac,
            },
        )

    @property
    def closed(self) -> bool:
        """Whether the master key has been wiped."""
        return self._master_key.cleared

    def close(self) -> None:
        """Wipe the master key. Later decrypt calls return failures."""
        self._master_key.clear()

    def __enter__(self) -> "Decoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Decoder(method={self.options.key_derivation_method.value}, "
            f"profile={self.options.profile_for().name}, closed={self.closed})"
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def encode(
    master_key: Union[str, bytes],
    uid: Union[str, bytes],
    counter: Union[int, bytes],
    file_data: Optional[Union[str, bytes]] = None,
    options: OptionsLike = None,
) -> EncodeResult:
    """Encrypt tag data with a one-off :class:`Encoder`."""
    return Encoder().encrypt(master_key, uid, counter, file_data, options)


def decode(
    master_key: Union[str, bytes],
    data: Any,
    options: OptionsLike = None,
) -> DecodedMessage:
    """Decrypt one message with a one-off :class:`Decoder`.

    Master key errors are reported in the result rather than raised.
    """
    try:
        decoder = Decoder(master_key, options)
    except NTAG424Error as e:
        logger.warning(f"SDM decode failed ({e.code}): {e.message}")
        return DecodedMessage.failure(e)
    with decoder:
        return decoder.decrypt(data)



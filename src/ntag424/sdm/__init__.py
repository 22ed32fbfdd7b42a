"""NTAG424 DNA Secure Dynamic Messaging codec.

This package decodes and encodes the encrypted, CMAC-authenticated payload
that NTAG424 DNA tags mirror into their SDM URLs.

Core Components:
    - Decoder / Encoder: zero-vector bootstrap decode and encode
    - derive_session_keys: NTAG424 official, HKDF, PBKDF2 and simple hash
    - Profile registry: uidOnly, counterOnly, uidCounter, full and custom
    - Parser: URL, query string and mapping input normalization

Example:
    ```python
    from ntag424.sdm import Decoder

    decoder = Decoder("00112233445566778899AABBCCDDEEFF")
    result = decoder.decrypt("https://example.com/nfc?picc_data=...&cmac=...")
    if result.is_authentic:
        print(f"UID={result.uid} counter={result.read_counter}")
    else:
        print(f"Rejected: {result.error or 'CMAC mismatch'}")
    ```
"""

from ntag424.sdm.exceptions import (
    DecryptionError,
    EncryptionError,
    KeyDerivationError,
    NTAG424Error,
    SDMProfileError,
    SecurityError,
    ValidationError,
    troubleshooting_tips,
)

from ntag424.sdm.models import (
    DecodedMessage,
    DerivationMethod,
    EncodeResult,
    EncryptedMessage,
    Operation,
    PICCRecord,
    ProfileValidation,
    SDMProfile,
)

from ntag424.sdm.secure_memory import (
    SecureBuffer,
    SessionKeyPair,
    generate_random_key,
    timing_safe_equal,
)

from ntag424.sdm.key_derivation import (
    DerivationOptions,
    build_session_vector,
    derive_session_keys,
)

from ntag424.sdm.profiles import (
    PROFILES,
    available_profiles,
    create_custom_profile,
    get_profile,
    resolve_profile,
    validate_operation_with_profile,
    validate_profile,
)

from ntag424.sdm.parser import (
    clean_hex_string,
    hex_to_bytes,
    normalize_input,
    parse_query_string,
    parse_url,
    validate_hex_string,
    validate_parsed_data,
)

from ntag424.sdm.config import CodecOptions

from ntag424.sdm.codec import (
    Decoder,
    Encoder,
    decode,
    encode,
    generate_master_key,
)

__all__ = [
    # Exceptions
    "NTAG424Error",
    "ValidationError",
    "KeyDerivationError",
    "EncryptionError",
    "DecryptionError",
    "SDMProfileError",
    "SecurityError",
    "troubleshooting_tips",
    # Models
    "DecodedMessage",
    "DerivationMethod",
    "EncodeResult",
    "EncryptedMessage",
    "Operation",
    "PICCRecord",
    "ProfileValidation",
    "SDMProfile",
    # Secure memory
    "SecureBuffer",
    "SessionKeyPair",
    "generate_random_key",
    "timing_safe_equal",
    # Key derivation
    "DerivationOptions",
    "build_session_vector",
    "derive_session_keys",
    # Profiles
    "PROFILES",
    "available_profiles",
    "create_custom_profile",
    "get_profile",
    "resolve_profile",
    "validate_operation_with_profile",
    "validate_profile",
    # Parser
    "clean_hex_string",
    "hex_to_bytes",
    "normalize_input",
    "parse_query_string",
    "parse_url",
    "validate_hex_string",
    "validate_parsed_data",
    # Codec
    "CodecOptions",
    "Decoder",
    "Encoder",
    "decode",
    "encode",
    "generate_master_key",
]

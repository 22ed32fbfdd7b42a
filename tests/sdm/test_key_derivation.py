"""Unit tests for session key derivation.

Expected values are computed independently with cryptography and hashlib.
"""

import hashlib

import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from conftest import reference_cmac
from ntag424.sdm.exceptions import KeyDerivationError, ValidationError
from ntag424.sdm.key_derivation import (
    HKDF_INFO,
    SV1_LABEL,
    SV2_LABEL,
    ZERO_COUNTER,
    ZERO_UID,
    DerivationOptions,
    build_session_vector,
    derive_session_keys,
)
from ntag424.sdm.models import DerivationMethod

UID = bytes.fromhex("04AABBCCDDEE80")
CTR = bytes.fromhex("00002A")


class TestSessionVector:
    """Tests for SV1/SV2 construction."""

    def test_layout(self):
        """Label, UID and counter are followed by zero padding."""
        sv = build_session_vector(SV1_LABEL, UID, CTR)

        assert len(sv) == 32
        assert sv[:6] == bytes.fromhex("3CC300010080")
        assert sv[6:13] == UID
        assert sv[13:16] == CTR
        assert sv[16:] == bytes(16)

    def test_short_length_truncates(self):
        """A 16-byte vector keeps the first 16 bytes."""
        sv = build_session_vector(SV2_LABEL, UID, CTR, sv_length=16)
        assert sv == bytes.fromhex("3CC300010081") + UID + CTR

    def test_minimum_length(self):
        with pytest.raises(KeyDerivationError):
            build_session_vector(SV1_LABEL, UID, CTR, sv_length=15)


class TestNtag424Official:
    """Tests for the NTAG424 official CMAC/ECB method."""

    def test_cmac_derivation(self, master_key):
        """Keys are CMAC(master, SV1) and CMAC(master, SV2)."""
        sv1 = bytes.fromhex(SV1_LABEL) + ZERO_UID + ZERO_COUNTER + bytes(16)
        sv2 = bytes.fromhex(SV2_LABEL) + ZERO_UID + ZERO_COUNTER + bytes(16)

        with derive_session_keys(DerivationMethod.NTAG424_OFFICIAL, master_key) as keys:
            assert bytes(keys.enc_key) == reference_cmac(master_key, sv1)
            assert bytes(keys.mac_key) == reference_cmac(master_key, sv2)
            assert keys.method is DerivationMethod.NTAG424_OFFICIAL

    def test_ecb_derivation(self, master_key):
        """Without CMAC, keys are AES-ECB over the first 16 SV bytes."""
        sv1 = bytes.fromhex(SV1_LABEL) + UID + CTR
        encryptor = Cipher(
            algorithms.AES(master_key), modes.ECB(), backend=default_backend()
        ).encryptor()
        expected = encryptor.update(sv1) + encryptor.finalize()

        options = DerivationOptions(use_cmac=False)
        with derive_session_keys("ntag424Official", master_key, UID, CTR, options) as keys:
            assert bytes(keys.enc_key) == expected

    def test_key_length_truncates(self, master_key):
        options = DerivationOptions(key_length=8)
        with derive_session_keys("ntag424Official", master_key, options=options) as keys:
            assert len(keys.enc_key) == 8
            assert len(keys.mac_key) == 8

    def test_enc_and_mac_differ(self, master_key):
        with derive_session_keys("ntag424Official", master_key) as keys:
            assert keys.enc_key != keys.mac_key

    def test_diversification_changes_keys(self, master_key):
        """Different UID/counter inputs produce different keys."""
        with derive_session_keys("ntag424Official", master_key) as zero_keys:
            zero = bytes(zero_keys.enc_key)
        with derive_session_keys("ntag424Official", master_key, UID, CTR) as tag_keys:
            assert bytes(tag_keys.enc_key) != zero


class TestHkdf:
    """Tests for the HKDF method."""

    def test_matches_reference(self, master_key):
        """Output is HKDF-SHA256(salt=uid||ctr, info) split in halves."""
        expected = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=UID + CTR,
            info=HKDF_INFO.encode(),
            backend=default_backend(),
        ).derive(master_key)

        with derive_session_keys("hkdf", master_key, UID, CTR) as keys:
            assert bytes(keys.enc_key) == expected[:16]
            assert bytes(keys.mac_key) == expected[16:]
            assert keys.to_hex()["derivation_method"] == "hkdf"

    def test_custom_salt_and_info(self, master_key):
        options = DerivationOptions(hkdf_salt=b"salt", hkdf_info="other")
        expected = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b"salt",
            info=b"other",
            backend=default_backend(),
        ).derive(master_key)

        with derive_session_keys("hkdf", master_key, options=options) as keys:
            assert bytes(keys.enc_key) == expected[:16]

    def test_rejects_sha1(self, master_key):
        with pytest.raises(KeyDerivationError):
            derive_session_keys("hkdf", master_key, options=DerivationOptions(hash_algorithm="sha1"))


class TestPbkdf2:
    """Tests for the PBKDF2 method."""

    def test_matches_reference(self, master_key):
        """Output is PBKDF2-SHA256("NTAG424"||uid||ctr, 10000) split in halves."""
        expected = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b"NTAG424" + UID + CTR,
            iterations=10000,
            backend=default_backend(),
        ).derive(master_key)

        with derive_session_keys("pbkdf2", master_key, UID, CTR) as keys:
            assert bytes(keys.enc_key) == expected[:16]
            assert bytes(keys.mac_key) == expected[16:]

    def test_iterations_change_output(self, master_key):
        options = DerivationOptions(iterations=1000)
        with derive_session_keys("pbkdf2", master_key, options=options) as fast:
            fast_key = bytes(fast.enc_key)
        with derive_session_keys("pbkdf2", master_key) as default:
            assert bytes(default.enc_key) != fast_key

    def test_minimum_iterations(self, master_key):
        with pytest.raises(KeyDerivationError) as exc_info:
            derive_session_keys("pbkdf2", master_key, options=DerivationOptions(iterations=999))
        assert exc_info.value.field == "iterations"


class TestSimpleHash:
    """Tests for the simple hash method."""

    @pytest.mark.parametrize("algorithm", ["sha256", "sha512", "sha1"])
    def test_matches_reference(self, master_key, algorithm):
        seed = master_key + UID + CTR
        options = DerivationOptions(hash_algorithm=algorithm)

        with derive_session_keys("simpleHash", master_key, UID, CTR, options) as keys:
            assert bytes(keys.enc_key) == hashlib.new(algorithm, seed + b"ENC").digest()[:16]
            assert bytes(keys.mac_key) == hashlib.new(algorithm, seed + b"MAC").digest()[:16]

    def test_rejects_sha384(self, master_key):
        with pytest.raises(KeyDerivationError):
            derive_session_keys(
                "simpleHash", master_key, options=DerivationOptions(hash_algorithm="sha384")
            )


class TestInputValidation:
    """Tests for derive_session_keys input checks."""

    def test_unknown_method(self, master_key):
        with pytest.raises(KeyDerivationError):
            derive_session_keys("md5", master_key)

    @pytest.mark.parametrize("length", [0, 15, 17, 32])
    def test_master_key_length(self, length):
        with pytest.raises(KeyDerivationError) as exc_info:
            derive_session_keys("hkdf", b"\x01" * length)
        assert exc_info.value.field == "master_key"

    def test_uid_length(self, master_key):
        with pytest.raises(ValidationError):
            derive_session_keys("hkdf", master_key, divers_uid=b"\x04" * 6)

    def test_counter_length(self, master_key):
        with pytest.raises(ValidationError):
            derive_session_keys("hkdf", master_key, divers_counter=b"\x00" * 4)

    def test_methods_produce_distinct_keys(self, master_key):
        """Every method yields a different key pair for the same input."""
        seen = set()
        for method in DerivationMethod:
            with derive_session_keys(method, master_key) as keys:
                seen.add(bytes(keys.enc_key))
        assert len(seen) == 4


class TestDerivationOptions:
    """Tests for DerivationOptions parsing and validation."""

    def test_defaults_valid(self):
        DerivationOptions().validate()

    def test_from_dict(self):
        options = DerivationOptions.from_dict({"iterations": 20000, "hkdf_salt": "0102"})
        assert options.iterations == 20000
        assert options.hkdf_salt == b"\x01\x02"

    def test_from_dict_unknown_key(self):
        with pytest.raises(KeyDerivationError):
            DerivationOptions.from_dict({"rounds": 5})

    def test_from_dict_bad_salt(self):
        with pytest.raises(KeyDerivationError):
            DerivationOptions.from_dict({"hkdf_salt": "zz"})

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"key_length": 0}, "key_length"),
            ({"key_length": 17}, "key_length"),
            ({"sv_length": 8}, "sv_length"),
            ({"enc_label": "XYZ"}, "enc_label"),
            ({"output_length": 31}, "output_length"),
            ({"hash_algorithm": "md5"}, "hash_algorithm"),
        ],
    )
    def test_validate_ranges(self, kwargs, field):
        with pytest.raises(KeyDerivationError) as exc_info:
            DerivationOptions(**kwargs).validate()
        assert exc_info.value.field == field

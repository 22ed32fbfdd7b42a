"""Unit tests for CodecOptions."""

import pytest

from ntag424.sdm.config import CodecOptions
from ntag424.sdm.exceptions import KeyDerivationError, SDMProfileError, ValidationError
from ntag424.sdm.key_derivation import DerivationOptions
from ntag424.sdm.models import DerivationMethod, SDMProfile


class TestDefaults:
    """Tests for default options."""

    def test_defaults(self):
        options = CodecOptions()

        assert options.key_derivation_method is DerivationMethod.NTAG424_OFFICIAL
        assert options.sdm_profile is None
        assert options.validate_cmac is True
        assert options.strict_validation is False
        assert options.derivation == DerivationOptions()

    def test_automatic_profile(self):
        """Without a configured profile, file data selects 'full'."""
        options = CodecOptions()
        assert options.profile_for().name == "uidCounter"
        assert options.profile_for(has_file_data=True).name == "full"

    def test_explicit_profile(self):
        options = CodecOptions(sdm_profile="uidOnly")
        assert options.profile_for(has_file_data=True).name == "uidOnly"

    def test_frozen(self):
        with pytest.raises(AttributeError):
            CodecOptions().validate_cmac = False


class TestConstruction:
    """Tests for parsing and validation at construction."""

    def test_method_string_parsed(self):
        assert CodecOptions(key_derivation_method="pbkdf2").key_derivation_method is DerivationMethod.PBKDF2

    def test_unknown_method(self):
        with pytest.raises(ValidationError) as exc_info:
            CodecOptions(key_derivation_method="md5")
        assert exc_info.value.field == "key_derivation_method"

    def test_unknown_profile(self):
        with pytest.raises(SDMProfileError):
            CodecOptions(sdm_profile="everything")

    def test_custom_profile_mapping(self):
        options = CodecOptions(sdm_profile={"includeCounter": True, "counterOffset": 1})
        assert isinstance(options.sdm_profile, SDMProfile)
        assert options.profile_for().counter_offset == 1

    def test_non_boolean_flag(self):
        with pytest.raises(ValidationError):
            CodecOptions(validate_cmac="yes")

    def test_invalid_derivation(self):
        with pytest.raises(KeyDerivationError):
            CodecOptions(derivation=DerivationOptions(iterations=10))

    @pytest.mark.parametrize(
        "derivation, field_name",
        [
            (DerivationOptions(key_length=8), "key_length"),
            (DerivationOptions(output_length=64), "output_length"),
        ],
    )
    def test_session_keys_must_be_aes128(self, derivation, field_name):
        """Parameters valid for derivation alone are rejected when they cannot key AES-128."""
        with pytest.raises(KeyDerivationError) as exc_info:
            CodecOptions(derivation=derivation)
        assert exc_info.value.field == field_name


class TestFromDict:
    """Tests for CodecOptions.from_dict."""

    def test_camel_case(self):
        options = CodecOptions.from_dict(
            {
                "keyDerivationMethod": "hkdf",
                "sdmProfile": "full",
                "validateCMAC": False,
                "strictValidation": True,
            }
        )
        assert options.key_derivation_method is DerivationMethod.HKDF
        assert options.sdm_profile == "full"
        assert options.validate_cmac is False
        assert options.strict_validation is True

    def test_snake_case(self):
        options = CodecOptions.from_dict({"key_derivation_method": "simpleHash"})
        assert options.key_derivation_method is DerivationMethod.SIMPLE_HASH

    def test_derivation_mapping(self):
        options = CodecOptions.from_dict(
            {"derivation": {"iterations": 2000, "algorithm": "sha512", "useCMAC": False}}
        )
        assert options.derivation.iterations == 2000
        assert options.derivation.hash_algorithm == "sha512"
        assert options.derivation.use_cmac is False

    def test_unknown_key(self):
        with pytest.raises(ValidationError) as exc_info:
            CodecOptions.from_dict({"timingAttackProtection": True})
        assert "timingAttackProtection" in str(exc_info.value)

    def test_bad_derivation_type(self):
        with pytest.raises(ValidationError):
            CodecOptions.from_dict({"derivation": "fast"})


class TestMerged:
    """Tests for per-call overrides."""

    def test_override(self):
        base = CodecOptions(sdm_profile="uidOnly")
        merged = base.merged({"validateCMAC": False})

        assert merged.validate_cmac is False
        assert merged.sdm_profile == "uidOnly"
        assert base.validate_cmac is True

    def test_empty_override_returns_self(self):
        base = CodecOptions()
        assert base.merged(None) is base
        assert base.merged({}) is base

    def test_override_validated(self):
        with pytest.raises(ValidationError):
            CodecOptions().merged({"method": "md5"})


class TestFromEnv:
    """Tests for CodecOptions.from_env."""

    def test_defaults(self, monkeypatch):
        for name in (
            "NTAG424_KEY_DERIVATION_METHOD",
            "NTAG424_SDM_PROFILE",
            "NTAG424_VALIDATE_CMAC",
            "NTAG424_STRICT_VALIDATION",
            "NTAG424_HASH_ALGORITHM",
            "NTAG424_PBKDF2_ITERATIONS",
        ):
            monkeypatch.delenv(name, raising=False)

        assert CodecOptions.from_env() == CodecOptions()

    def test_values(self, monkeypatch):
        monkeypatch.setenv("NTAG424_KEY_DERIVATION_METHOD", "pbkdf2")
        monkeypatch.setenv("NTAG424_SDM_PROFILE", "full")
        monkeypatch.setenv("NTAG424_VALIDATE_CMAC", "false")
        monkeypatch.setenv("NTAG424_STRICT_VALIDATION", "1")
        monkeypatch.setenv("NTAG424_HASH_ALGORITHM", "SHA512")
        monkeypatch.setenv("NTAG424_PBKDF2_ITERATIONS", "5000")

        options = CodecOptions.from_env()

        assert options.key_derivation_method is DerivationMethod.PBKDF2
        assert options.sdm_profile == "full"
        assert options.validate_cmac is False
        assert options.strict_validation is True
        assert options.derivation.hash_algorithm == "sha512"
        assert options.derivation.iterations == 5000

    def test_to_dict(self):
        data = CodecOptions(key_derivation_method="hkdf", sdm_profile="full").to_dict()
        assert data == {
            "key_derivation_method": "hkdf",
            "sdm_profile": "full",
            "validate_cmac": True,
            "strict_validation": False,
        }

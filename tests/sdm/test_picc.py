"""Unit tests for the PICC block layout."""

import pytest

from ntag424.sdm.exceptions import DecryptionError, EncryptionError
from ntag424.sdm.picc import build_picc_block, parse_picc_block, validate_picc_record
from ntag424.sdm.profiles import create_custom_profile, get_profile

UID = bytes.fromhex("04AABBCCDDEE80")


class TestBuildPiccBlock:
    """Tests for build_picc_block."""

    def test_uid_counter_layout(self):
        block = build_picc_block(get_profile("uidCounter"), UID, 42)
        assert block.hex().upper() == "C704AABBCCDDEE8000002A0000000000"

    def test_counter_is_big_endian(self):
        block = build_picc_block(get_profile("uidCounter"), UID, 0x123456)
        assert block[8:11] == bytes.fromhex("123456")

    def test_uid_only_layout(self):
        block = build_picc_block(get_profile("uidOnly"), UID, 42)
        assert block == b"\xc7" + UID + bytes(8)

    def test_counter_only_layout(self):
        block = build_picc_block(get_profile("counterOnly"), None, 7)
        assert block == b"\xc7\x00\x00\x07" + bytes(12)

    def test_pads_to_block_size(self):
        """A block length that is not a multiple of 16 is zero-padded."""
        profile = create_custom_profile(include_uid=True, include_counter=True, picc_data_length=12)
        block = build_picc_block(profile, UID, 1)
        assert len(block) == 16
        assert block[12:] == bytes(4)

    def test_longer_block(self):
        profile = create_custom_profile(include_uid=True, picc_data_length=32)
        assert len(build_picc_block(profile, UID)) == 32

    def test_counter_overflows_region(self):
        profile = create_custom_profile(include_counter=True, counter_length=1)
        with pytest.raises(EncryptionError) as exc_info:
            build_picc_block(profile, None, 300)
        assert exc_info.value.step == "buildPiccData"


class TestParsePiccBlock:
    """Tests for parse_picc_block."""

    def test_round_trip(self):
        profile = get_profile("uidCounter")
        record = parse_picc_block(build_picc_block(profile, UID, 42), profile)

        assert record.data_tag == 0xC7
        assert record.uid == UID
        assert record.read_counter == bytes.fromhex("00002A")
        assert record.read_counter_int == 42
        assert record.padding == bytes(5)
        assert len(record.raw) == 16

    def test_excluded_regions_are_none(self):
        profile = get_profile("counterOnly")
        record = parse_picc_block(build_picc_block(profile, None, 9), profile)

        assert record.uid is None
        assert record.read_counter_int == 9
        assert record.padding == bytes(12)

    def test_short_block(self):
        """Regions past the end of the data are left empty."""
        record = parse_picc_block(b"\xc7\x04\x01", get_profile("uidCounter"))
        assert record.data_tag == 0xC7
        assert record.uid is None
        assert record.read_counter is None
        assert record.padding is None

    def test_empty_block(self):
        assert parse_picc_block(b"", get_profile("uidOnly")).data_tag is None


class TestValidatePiccRecord:
    """Tests for structural validation."""

    def _record(self, data):
        return parse_picc_block(data, get_profile("uidCounter"))

    def test_valid(self):
        validate_picc_record(self._record(build_picc_block(get_profile("uidCounter"), UID, 1)))

    def test_bad_tag(self):
        block = b"\xc6" + build_picc_block(get_profile("uidCounter"), UID, 1)[1:]
        with pytest.raises(DecryptionError) as exc_info:
            validate_picc_record(self._record(block))
        assert exc_info.value.step == "validation"

    def test_too_short(self):
        with pytest.raises(DecryptionError, match="too short"):
            validate_picc_record(self._record(b"\xc7\x04" + bytes(8)))

    def test_bad_uid_prefix(self):
        block = build_picc_block(get_profile("uidCounter"), b"\x05" + UID[1:], 1)
        with pytest.raises(DecryptionError, match="04"):
            validate_picc_record(self._record(block))

    def test_counter_out_of_range(self):
        """A wider custom counter region can exceed 2^24 - 1."""
        profile = create_custom_profile(include_counter=True, counter_offset=1, counter_length=4)
        block = b"\xc7\x01\x00\x00\x00" + bytes(11)
        with pytest.raises(DecryptionError, match="out of range"):
            validate_picc_record(parse_picc_block(block, profile))

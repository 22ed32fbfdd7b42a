"""PICC data block layout.

The plaintext PICC block starts with the data tag ``0xC7``, followed by the
UID and read counter regions defined by the active profile. Unused bytes
are zero. The block is zero-padded to whole AES blocks before encryption.
"""

from typing import Optional

from ntag424.sdm.crypto import pad_zero
from ntag424.sdm.exceptions import DecryptionError, EncryptionError
from ntag424.sdm.models import (
    MAX_COUNTER,
    MIN_PICC_LENGTH,
    PICC_DATA_TAG,
    UID_PREFIX,
    PICCRecord,
    SDMProfile,
)


def build_picc_block(
    profile: SDMProfile,
    uid: Optional[bytes] = None,
    counter: Optional[int] = None,
) -> bytes:
    """Build the plaintext PICC block for a profile.

    Args:
        profile: Validated profile.
        uid: UID bytes, written when the profile includes the UID.
        counter: Read counter, written big-endian when the profile includes it.

    Returns:
        Block of ``picc_data_length`` bytes, zero-padded to a multiple of 16.

    Raises:
        EncryptionError: If a region does not fit the block or the counter
            does not fit its region.
    """
    block = bytearray(profile.picc_data_length)
    block[0] = PICC_DATA_TAG

    if profile.include_uid and uid is not None:
        region = bytes(uid[: profile.uid_length])
        if profile.uid_offset + len(region) > len(block):
            raise EncryptionError(
                "UID data extends beyond PICC data length",
                "buildPiccData",
                uid_offset=profile.uid_offset,
                uid_length=len(region),
                picc_length=len(block),
            )
        block[profile.uid_offset : profile.uid_offset + len(region)] = region

    if profile.include_counter and counter is not None:
        try:
            region = counter.to_bytes(profile.counter_length, "big")
        except OverflowError:
            raise EncryptionError(
                f"Counter {counter} does not fit in {profile.counter_length} bytes",
                "buildPiccData",
                counter_length=profile.counter_length,
            ) from None
        if profile.counter_offset + len(region) > len(block):
            raise EncryptionError(
                "Counter data extends beyond PICC data length",
                "buildPiccData",
                counter_offset=profile.counter_offset,
                counter_length=len(region),
                picc_length=len(block),
            )
        block[profile.counter_offset : profile.counter_offset + len(region)] = region

    return pad_zero(bytes(block))


def parse_picc_block(decrypted: bytes, profile: SDMProfile) -> PICCRecord:
    """Extract the fields of a decrypted PICC block.

    Regions that fall outside the block are left as None. The counter is read
    as an unsigned big-endian integer. Bytes after the last used region are
    returned as padding.
    """
    record = PICCRecord(data_tag=decrypted[0] if decrypted else None, raw=bytes(decrypted))

    if profile.include_uid and len(decrypted) >= profile.uid_offset + profile.uid_length:
        record.uid = bytes(decrypted[profile.uid_offset : profile.uid_offset + profile.uid_length])

    counter_end = profile.counter_offset + profile.counter_length
    if profile.include_counter and len(decrypted) >= counter_end:
        record.read_counter = bytes(decrypted[profile.counter_offset : counter_end])
        record.read_counter_int = int.from_bytes(record.read_counter, "big")

    if len(decrypted) > profile.data_end:
        record.padding = bytes(decrypted[profile.data_end :])

    return record


def validate_picc_record(record: PICCRecord) -> None:
    """Check that a decrypted block has a valid NTAG424 structure.

    Rules:
        - data tag is 0xC7
        - block is at least 11 bytes
        - UID, when present, starts with 0x04
        - counter, when present, is at most 2^24 - 1

    A failure usually means the master key or derivation method is wrong.

    Raises:
        DecryptionError: With ``step="validation"`` on the first failing rule.
    """
    if record.data_tag != PICC_DATA_TAG:
        raise DecryptionError(
            "Invalid decrypted data structure: bad PICC data tag",
            "validation",
            data_tag=record.data_tag,
            expected_data_tag=PICC_DATA_TAG,
            picc_length=len(record.raw),
        )
    if len(record.raw) < MIN_PICC_LENGTH:
        raise DecryptionError(
            "Invalid decrypted data structure: PICC data too short",
            "validation",
            picc_length=len(record.raw),
            min_length=MIN_PICC_LENGTH,
        )
    if record.uid is not None and (not record.uid or record.uid[0] != UID_PREFIX):
        raise DecryptionError(
            "Invalid decrypted data structure: UID does not start with 04",
            "validation",
            uid_prefix=record.uid[:1].hex().upper(),
        )
    if record.read_counter_int is not None and not 0 <= record.read_counter_int <= MAX_COUNTER:
        raise DecryptionError(
            "Invalid decrypted data structure: read counter out of range",
            "validation",
            read_counter=record.read_counter_int,
            max_counter=MAX_COUNTER,
        )

import base64
import os

import pytest

from authcodes.codec import secret_utils

RFC_KEY = b"12345678901234567890"
RFC_KEY_BASE32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


def test_base32_decodes_rfc_key():
    assert secret_utils.decode_secret(RFC_KEY_BASE32) == RFC_KEY


def test_base32_is_case_and_whitespace_insensitive():
    messy = "  gezd gnbv gy3t qojq\tGEZD GNBV GY3T QOJQ \n"
    assert secret_utils.decode_secret(messy, "base32") == RFC_KEY


def test_base32_round_trips_reference_encoder():
    for length in range(1, 41):
        raw = os.urandom(length)
        padded = base64.b32encode(raw).decode("ascii")
        assert secret_utils.decode_secret(padded) == raw
        assert secret_utils.decode_secret(padded.rstrip("=").lower()) == raw


def test_base32_discards_leftover_bits():
    # 'JBSWY3DP' is 40 bits -> 5 bytes; one extra char adds 5 bits that cannot form a byte.
    assert secret_utils.decode_secret("JBSWY3DPA") == secret_utils.decode_secret("JBSWY3DP")


@pytest.mark.parametrize("bad", ["1", "0", "8", "!"])
def test_base32_rejects_characters_outside_alphabet(bad):
    with pytest.raises(secret_utils.InvalidCharacterError) as excinfo:
        secret_utils.decode_secret("JBSW" + bad + "Y3DP")
    assert excinfo.value.character == bad
    assert excinfo.value.encoding == "base32"


def test_base32_rejects_padding_in_the_middle():
    with pytest.raises(secret_utils.InvalidCharacterError):
        secret_utils.decode_secret("JBSW==Y3DP")


@pytest.mark.parametrize("encoding", ["base32", "base64", "hex"])
@pytest.mark.parametrize("text", ["", "   ", "\t\n"])
def test_empty_secret_rejected_for_every_encoding(encoding, text):
    with pytest.raises(secret_utils.EmptySecretError):
        secret_utils.decode_secret(text, encoding)


def test_empty_check_precedes_encoding_check():
    with pytest.raises(secret_utils.EmptySecretError):
        secret_utils.decode_secret("  ", "rot13")


def test_unsupported_encoding():
    with pytest.raises(secret_utils.UnsupportedEncodingError):
        secret_utils.decode_secret("abc", "rot13")


@pytest.mark.parametrize("text,encoding", [("====", "base32"), ("A", "base32"), ("0x", "hex")])
def test_input_decoding_to_nothing_is_empty(text, encoding):
    with pytest.raises(secret_utils.EmptySecretError):
        secret_utils.decode_secret(text, encoding)


def test_base64_decodes_with_and_without_padding():
    assert secret_utils.decode_secret("MTIzNDU2Nzg5MDEyMzQ1Njc4OTA=", "base64") == RFC_KEY
    assert secret_utils.decode_secret("AQI=", "base64") == b"\x01\x02"
    assert secret_utils.decode_secret("AQI", "base64") == b"\x01\x02"
    assert secret_utils.decode_secret(" AQ\nI= ", "BASE64") == b"\x01\x02"


def test_base64_rejects_foreign_characters():
    with pytest.raises(secret_utils.InvalidCharacterError) as excinfo:
        secret_utils.decode_secret("AQ-_", "base64")
    assert excinfo.value.character == "-"


def test_base64_rejects_truncated_group():
    with pytest.raises(secret_utils.SecretDecodeError):
        secret_utils.decode_secret("AQIDB", "base64")


def test_hex_odd_length_is_left_padded():
    assert secret_utils.decode_secret("abc", "hex") == b"\x0a\xbc"


def test_hex_prefix_case_and_whitespace():
    assert secret_utils.decode_secret("0xDEAD beef", "hex") == b"\xde\xad\xbe\xef"
    assert secret_utils.decode_secret("0X0a", "hex") == b"\x0a"


def test_hex_rejects_non_hex_digits():
    with pytest.raises(secret_utils.InvalidCharacterError) as excinfo:
        secret_utils.decode_secret("12zz", "hex")
    assert excinfo.value.character == "z"


def test_decode_errors_are_value_errors():
    assert issubclass(secret_utils.SecretDecodeError, ValueError)
    assert not secret_utils.is_valid_secret("not base32!")
    assert secret_utils.is_valid_secret(RFC_KEY_BASE32)


def test_normalize_and_encode_base32():
    assert secret_utils.normalize_base32(" gezd gnbv gy3t qojq gezd gnbv gy3t qojq== ") == RFC_KEY_BASE32
    assert secret_utils.encode_base32(RFC_KEY) == RFC_KEY_BASE32


@pytest.mark.parametrize("bad", ["ß", "ı", "ﬀ", "Ａ"])
def test_base32_rejects_non_ascii_that_case_maps_into_alphabet(bad):
    with pytest.raises(secret_utils.InvalidCharacterError) as excinfo:
        secret_utils.decode_secret("JBSWY3DP" + bad + "A")
    assert excinfo.value.character == bad

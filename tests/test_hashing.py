import pytest

from geosentry.hashing import Blake3, blake3_hex

EMPTY_DIGEST = "af1349b9f5f9a1a6a0404dea36dcc9499bcb25c9adc112b7cc9a93cae41f3262"


def _pattern(length):
    return bytes(i % 251 for i in range(length))


def test_empty_input_digest():
    assert Blake3().hexdigest() == EMPTY_DIGEST
    assert blake3_hex() == EMPTY_DIGEST


def test_digest_length_and_hex_agree():
    hasher = Blake3(b"some data")
    digest = hasher.digest()
    assert len(digest) == 32
    assert hasher.hexdigest() == digest.hex()


@pytest.mark.parametrize(
    "length", [1, 63, 64, 65, 1023, 1024, 1025, 2048, 2049, 3072, 3073, 5000]
)
def test_incremental_matches_one_shot(length):
    data = _pattern(length)
    one_shot = Blake3(data).hexdigest()
    incremental = Blake3()
    for start in range(0, length, 37):
        incremental.update(data[start : start + 37])
    assert incremental.hexdigest() == one_shot


@pytest.mark.parametrize("length", [1, 64, 1024, 1025, 4096])
def test_distinct_inputs_give_distinct_digests(length):
    data = _pattern(length)
    changed = data[:-1] + bytes([(data[-1] + 1) % 256])
    assert Blake3(data).digest() != Blake3(changed).digest()
    assert Blake3(data).digest() != Blake3(data + b"\0").digest()


def test_digest_does_not_consume_state():
    hasher = Blake3(b"abc")
    first = hasher.hexdigest()
    assert hasher.hexdigest() == first
    hasher.update(b"def")
    assert hasher.hexdigest() == Blake3(b"abcdef").hexdigest()


def test_blake3_hex_concatenates_arguments():
    assert blake3_hex("Windows", b" 11", bytearray(b"!")) == Blake3(b"Windows 11!").hexdigest()


def test_blake3_hex_encodes_strings_as_utf8():
    text = "مرحبا"
    assert blake3_hex(text) == Blake3(text.encode("utf-8")).hexdigest()


def test_update_returns_hasher():
    hasher = Blake3()
    assert hasher.update(b"x") is hasher


def test_update_rejects_text():
    with pytest.raises(TypeError):
        Blake3().update("text")
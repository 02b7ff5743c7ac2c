import base64
import hashlib

import pytest

from nixjbplugins.nixhash import (
    ALPHABET,
    from_nix_base32,
    nix32_to_base64,
    to_nix_base32,
)

SAMPLES = [
    b"\x01",
    b"\xff",
    b"\x00\x80",
    hashlib.md5(b"plugin").digest(),
    hashlib.sha1(b"plugin").digest(),
    hashlib.sha256(b"plugin").digest(),
    hashlib.sha512(b"plugin").digest(),
]


def test_pinned_single_byte():
    assert to_nix_base32(b"\x01") == "01"


def test_zero_bytes_encode_to_zeros():
    assert to_nix_base32(bytes(32)) == "0" * 52


def test_sha256_length():
    assert len(to_nix_base32(hashlib.sha256(b"x").digest())) == 52


@pytest.mark.parametrize("data", SAMPLES)
def test_round_trip(data):
    encoded = to_nix_base32(data)
    assert set(encoded) <= set(ALPHABET)
    assert from_nix_base32(encoded) == data


def test_empty():
    assert to_nix_base32(b"") == ""
    assert from_nix_base32("") == b""


@pytest.mark.parametrize("text", ["e", "0o", "tu", "0" * 51 + "E"])
def test_invalid_characters(text):
    with pytest.raises(ValueError):
        from_nix_base32(text)


@pytest.mark.parametrize("text", ["z", "zz"])
def test_excess_bits(text):
    with pytest.raises(ValueError):
        from_nix_base32(text)


@pytest.mark.parametrize("data", SAMPLES)
def test_nix32_to_base64_round_trip(data):
    assert base64.b64decode(nix32_to_base64(to_nix_base32(data))) == data


def test_nix32_to_base64_sha256():
    digest = hashlib.sha256(b"archive").digest()
    assert nix32_to_base64(to_nix_base32(digest)) == base64.b64encode(digest).decode()


def test_nix32_to_base64_invalid():
    with pytest.raises(ValueError):
        nix32_to_base64("not-valid")
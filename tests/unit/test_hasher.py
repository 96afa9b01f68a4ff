"""Unit tests for the upload content fingerprint."""

import pytest

from patternq.patterns.hasher import content_hash

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
ABC_SHA256 = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_known_digest():
    assert content_hash(b"abc") == ABC_SHA256


def test_empty_input_is_valid():
    assert content_hash(b"") == EMPTY_SHA256


def test_same_bytes_same_hash(png_bytes):
    assert content_hash(png_bytes) == content_hash(bytes(png_bytes))


def test_one_byte_changes_hash(png_bytes):
    assert content_hash(png_bytes) != content_hash(png_bytes + b"\x00")


def test_digest_is_lowercase_hex():
    digest = content_hash(b"image")
    assert len(digest) == 64
    assert digest == digest.lower()
    int(digest, 16)


def test_rejects_text():
    with pytest.raises(TypeError):
        content_hash("not bytes")  # type: ignore[arg-type]

from __future__ import annotations

from atrecord.tid import generate_tid
from atrecord.validators import is_valid_did, is_valid_handle, is_valid_tid


def test_did_requires_prefix_method_and_identifier() -> None:
    assert is_valid_did("did:plc:abc123")
    assert is_valid_did("did:web:example.com")
    assert is_valid_did("did:key:z6Mk_a-b%3A:c")
    assert not is_valid_did("plc:abc123")
    assert not is_valid_did("did:plc:")
    assert not is_valid_did("did:PLC:abc123")
    assert not is_valid_did("did:plc:abc 123")
    assert not is_valid_did("did:plc:abc123\n")


def test_handle_needs_dotted_labels_and_letter_tld() -> None:
    assert is_valid_handle("alice.bsky.social")
    assert is_valid_handle("a.co")
    assert is_valid_handle("my-name.example.com")
    assert not is_valid_handle("alice")
    assert not is_valid_handle("-alice.example.com")
    assert not is_valid_handle("alice-.example.com")
    assert not is_valid_handle("alice..com")
    assert not is_valid_handle("alice.b2")
    assert not is_valid_handle("alice.com.")


def test_handle_label_length_limit() -> None:
    assert is_valid_handle("a" * 63 + ".com")
    assert not is_valid_handle("a" * 64 + ".com")


def test_tid_shape() -> None:
    assert is_valid_tid(generate_tid())
    assert is_valid_tid("3jzfcijpj2z2a")
    assert not is_valid_tid("3jzfcijpj2z2")
    assert not is_valid_tid("3jzfcijpj2z2a2")
    assert not is_valid_tid("zjzfcijpj2z2a")
    assert not is_valid_tid("3jzfcijpj2z1a")


def test_non_strings_are_invalid() -> None:
    for value in (None, 123, b"did:plc:abc", ["alice.bsky.social"]):
        assert not is_valid_did(value)
        assert not is_valid_handle(value)
        assert not is_valid_tid(value)

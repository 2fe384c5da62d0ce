"""
Tests for sui_archive/signatures.py and canonical addresses

Covers:
  - Primitive, vector, reference and type parameter rendering
  - Datatypes with full zero-padded addresses and nested type arguments
  - canonical_address normalisation and rejection
"""

import pytest

from sui_archive.models import canonical_address
from sui_archive.module_reader import SignatureToken, TokenKind
from sui_archive.signatures import format_signature, format_signature_token, resolve_datatype

TWO = "0x" + "0" * 63 + "2"


class TestCanonicalAddress:
    def test_short_form_is_padded(self):
        assert canonical_address("0x2") == TWO

    def test_uppercase_without_prefix(self):
        assert canonical_address("ABC") == "0x" + "0" * 61 + "abc"

    def test_raw_bytes(self):
        assert canonical_address(b"\x00" * 31 + b"\x02") == TWO

    def test_without_prefix(self):
        assert canonical_address("0x2", with_prefix=False) == "0" * 63 + "2"

    def test_rejects_wrong_byte_length(self):
        with pytest.raises(ValueError):
            canonical_address(b"\x01\x02")

    def test_rejects_non_hex(self):
        with pytest.raises(ValueError):
            canonical_address("0xzz")

    def test_rejects_overlong(self):
        with pytest.raises(ValueError):
            canonical_address("0x" + "1" * 65)


class TestFormatSignatureToken:
    @pytest.mark.parametrize("kind,expected", [
        (TokenKind.BOOL, "bool"),
        (TokenKind.U8, "u8"),
        (TokenKind.U256, "u256"),
        (TokenKind.ADDRESS, "address"),
        (TokenKind.SIGNER, "signer"),
    ])
    def test_primitives(self, pay_module, kind, expected):
        assert format_signature_token(pay_module, SignatureToken.primitive(kind)) == expected

    def test_vector_of_u8(self, pay_module):
        token = SignatureToken.vector(SignatureToken.primitive(TokenKind.U8))
        assert format_signature_token(pay_module, token) == "vector<u8>"

    def test_references(self, pay_module):
        u64 = SignatureToken.primitive(TokenKind.U64)
        assert format_signature_token(pay_module, SignatureToken.reference(u64)) == "&u64"
        assert format_signature_token(pay_module, SignatureToken.mutable_reference(u64)) == "&mut u64"

    def test_type_parameter(self, pay_module):
        assert format_signature_token(pay_module, SignatureToken.type_parameter(0)) == "T0"
        assert format_signature_token(pay_module, SignatureToken.type_parameter(3)) == "T3"

    def test_plain_datatype(self, pay_module):
        assert format_signature_token(pay_module, SignatureToken.datatype(1)) == f"{TWO}::sui::SUI"

    def test_nested_generic(self, pay_module):
        token = SignatureToken.vector(
            SignatureToken.mutable_reference(
                SignatureToken.datatype(0, SignatureToken.datatype(1))
            )
        )
        assert format_signature_token(pay_module, token) == (
            f"vector<&mut {TWO}::coin::Coin<{TWO}::sui::SUI>>"
        )

    def test_multiple_type_arguments(self, pay_module):
        token = SignatureToken.datatype(
            0, SignatureToken.type_parameter(0), SignatureToken.primitive(TokenKind.U8)
        )
        assert format_signature_token(pay_module, token) == f"{TWO}::coin::Coin<T0, u8>"

    def test_primitive_constructor_rejects_composites(self):
        with pytest.raises(ValueError):
            SignatureToken.primitive(TokenKind.VECTOR)


class TestFormatSignature:
    def test_keeps_order(self, pay_module):
        tokens = pay_module.signature_at(1)
        assert format_signature(pay_module, tokens) == [
            f"{TWO}::coin::Coin<{TWO}::sui::SUI>",
            "address",
        ]

    def test_empty(self, pay_module):
        assert format_signature(pay_module, []) == []

    def test_resolve_datatype(self, pay_module):
        assert resolve_datatype(pay_module, 2) == (TWO, "pay", "TreasuryCap")

"""
Tests for triads, glyph identity, canonical form and content addressing
"""

import base64

import pytest

from uor_kernel.canonical import (canonical_bytes, canonical_decode, canonical_json, compute_cid,
                                  content_address, module_identity, parse_cid)
from uor_kernel.errors import ValidationError
from uor_kernel.identity import (bytes_to_glyph, bytes_to_iri, bytes_to_uplus, glyph_to_bytes,
                                 iri_to_bytes)
from uor_kernel.triad import byte_dots, stratum_density, stratum_level, triad


class TestTriad:
    def test_single_byte(self):
        t = triad((0b10100001,))
        assert t.stratum == (3,)
        assert t.spectrum == ((0, 5, 7),)
        assert t.total_stratum == 3

    def test_multi_byte(self):
        t = triad((0xFF, 0x00, 0x01))
        assert t.stratum == (8, 0, 1)
        assert t.spectrum[1] == ()
        assert t.total_stratum == 9

    def test_width_mismatch(self):
        with pytest.raises(ValidationError):
            triad((1, 2), width=1)

    def test_empty_and_out_of_range(self):
        with pytest.raises(ValidationError):
            triad(())
        with pytest.raises(ValidationError):
            triad((300,))

    def test_to_dict(self):
        assert triad((3,)).to_dict() == {
            "datum": [3], "stratum": [2], "spectrum": [[0, 1]], "totalStratum": 2,
        }

    def test_levels(self):
        assert stratum_level(0, 8) == "low"
        assert stratum_level(4, 8) == "medium"
        assert stratum_level(8, 8) == "high"
        assert stratum_density(4, 8) == 50.0

    def test_dots_are_one_indexed(self):
        assert byte_dots(0b11) == (1, 2)


class TestGlyphIdentity:
    def test_round_trip_all_bytes(self):
        data = tuple(range(256))
        assert glyph_to_bytes(bytes_to_glyph(data)) == data

    def test_glyph_outside_alphabet(self):
        with pytest.raises(ValidationError):
            glyph_to_bytes("a")

    def test_uplus(self):
        assert bytes_to_uplus((0x55, 0xAA)) == "U+2855 U+28AA"

    def test_iri_round_trip(self):
        iri = bytes_to_iri((0x55, 0xAA))
        assert iri == "https://uor.foundation/u/U2855U28AA"
        assert iri_to_bytes(iri) == (0x55, 0xAA)

    def test_iri_rejects_foreign_codepoint(self):
        with pytest.raises(ValidationError):
            iri_to_bytes("https://uor.foundation/u/U0041")

    def test_iri_without_segments(self):
        with pytest.raises(ValidationError):
            iri_to_bytes("https://uor.foundation/u/")


class TestCanonicalForm:
    def test_key_order_independent(self):
        a = {"b": 1, "a": [1, 2, {"z": None, "y": True}]}
        b = {"a": [1, 2, {"y": True, "z": None}], "b": 1}
        assert canonical_bytes(a) == canonical_bytes(b)
        assert canonical_json(a) == '{"a":[1,2,{"y":true,"z":null}],"b":1}'

    def test_round_trip_is_idempotent(self):
        value = {"name": "éa\"\n", "n": [1, 2.5, -3], "nested": {"k": False}}
        once = canonical_json(value)
        assert canonical_json(canonical_decode(once)) == once

    def test_integral_float(self):
        assert canonical_json(2.0) == "2"
        assert canonical_json(0.5) == "0.5"

    def test_utf16_key_order(self):
        # U+FF21 precedes U+10000 by code point but follows its surrogate pair in UTF-16
        assert canonical_json({"\U00010000": 1, "\uff21": 2}) == '{"\U00010000":1,"\uff21":2}'

    def test_rejects_non_finite(self):
        with pytest.raises(ValidationError):
            canonical_json(float("nan"))

    def test_rejects_unsupported_types(self):
        with pytest.raises(ValidationError):
            canonical_json({"s": {1, 2}})
        with pytest.raises(ValidationError):
            canonical_json({1: "x"})

    def test_decode_invalid(self):
        with pytest.raises(ValidationError):
            canonical_decode("{not json")


class TestContentAddress:
    def test_deterministic(self):
        assert compute_cid(b"uor") == compute_cid(b"uor")

    def test_single_byte_change(self):
        assert compute_cid(b"uor") != compute_cid(b"uos")

    def test_shape(self):
        cid = compute_cid(b"")
        assert cid.startswith("b")
        assert cid == cid.lower()
        assert "=" not in cid

    def test_envelope(self):
        cid = content_address({"a": 1})
        raw = base64.b32decode(cid[1:].upper() + "=" * (-len(cid[1:]) % 8))
        assert raw[:5] == bytes([0x01, 0xA9, 0x02, 0x12, 0x20])
        assert len(raw) == 37

    def test_parse_cid(self):
        parsed = parse_cid(compute_cid(b"x"))
        assert (parsed.version, parsed.codec, parsed.hash_code) == (1, 0x0129, 0x12)
        assert len(parsed.digest) == 32

    def test_parse_cid_bad_prefix(self):
        with pytest.raises(ValidationError):
            parse_cid("zabc")


class TestModuleIdentity:
    def test_self_referential_fields_ignored(self):
        manifest = {"name": "ring-core", "version": "1.0.0"}
        first = module_identity(manifest)
        stamped = dict(manifest, **{"store:cid": first.cid, "store:uorAddress": first.uor_address})
        assert module_identity(stamped).cid == first.cid

    def test_uor_address(self):
        ident = module_identity({"a": 1})
        assert ident.uor_address["u:length"] == len(ident.canonical_bytes)
        assert glyph_to_bytes(ident.uor_address["u:glyph"]) == tuple(ident.canonical_bytes)

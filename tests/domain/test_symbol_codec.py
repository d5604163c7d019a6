"""
Symbol codec: identifier <-> optical-code payload.

Round-trip for every identifier, and every corruption of a payload is
either rejected or (never) silently mapped to another identifier.
"""

import base64
import string
import zlib
from uuid import UUID, uuid4

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from homebox_kernel.domain.symbol import SymbolCodec, decode, encode
from homebox_kernel.exceptions import (
    DecodeError,
    MalformedSymbolError,
    SymbolChecksumError,
    UnsupportedSymbolVersionError,
)

codec = SymbolCodec()

uuids = st.uuids(version=4) | st.builds(UUID, int=st.integers(0, 2**128 - 1))
BASE32 = string.ascii_uppercase + "234567"


class TestEncode:
    def test_layout(self):
        payload = encode(UUID("12345678-1234-5678-1234-567812345678"))
        assert len(payload) == 35
        assert payload.startswith(b"HB1")
        assert set(payload[3:].decode()) <= set(BASE32)

    def test_known_vector(self):
        entity_id = UUID(int=0)
        checksum = zlib.crc32(bytes(16)).to_bytes(4, "big")
        assert encode(entity_id) == b"HB1" + base64.b32encode(bytes(16) + checksum)

    def test_rejects_non_uuid(self):
        with pytest.raises(TypeError):
            codec.encode("12345678-1234-5678-1234-567812345678")

    @given(uuids)
    def test_round_trip(self, entity_id):
        assert decode(encode(entity_id)) == entity_id

    @given(uuids)
    def test_str_and_bytes_forms_agree(self, entity_id):
        payload = encode(entity_id)
        assert decode(payload.decode("ascii")) == entity_id
        assert decode(bytearray(payload)) == entity_id
        assert decode(memoryview(payload)) == entity_id

    @given(uuids, uuids)
    def test_distinct_ids_give_distinct_payloads(self, a, b):
        assume(a != b)
        assert encode(a) != encode(b)


class TestDecodeRejects:
    @pytest.mark.parametrize("payload", [None, 42, 3.5, ["HB1"], object()])
    def test_wrong_type(self, payload):
        with pytest.raises(MalformedSymbolError):
            decode(payload)

    def test_empty(self):
        with pytest.raises(MalformedSymbolError):
            decode(b"")

    def test_non_ascii(self):
        payload = encode(uuid4()).decode()
        with pytest.raises(MalformedSymbolError):
            decode(payload[:-1] + "é")

    def test_truncated(self):
        with pytest.raises(MalformedSymbolError):
            decode(encode(uuid4())[:-1])

    def test_extended(self):
        with pytest.raises(MalformedSymbolError):
            decode(encode(uuid4()) + b"A")

    def test_wrong_magic(self):
        with pytest.raises(MalformedSymbolError):
            decode(b"XX1" + encode(uuid4())[3:])

    def test_unknown_version(self):
        with pytest.raises(UnsupportedSymbolVersionError) as exc_info:
            decode(b"HB2" + encode(uuid4())[3:])
        assert exc_info.value.version == "2"

    def test_lowercase_is_not_folded(self):
        payload = encode(uuid4())
        with pytest.raises(MalformedSymbolError):
            decode(payload[:3] + payload[3:].lower())

    def test_whitespace_is_not_trimmed(self):
        payload = encode(uuid4())
        with pytest.raises(MalformedSymbolError):
            decode(b" " + payload[:-1])

    def test_checksum_mismatch(self):
        entity_id = uuid4()
        bad = base64.b32encode(entity_id.bytes + b"\x00\x00\x00\x00")
        if zlib.crc32(entity_id.bytes) == 0:
            pytest.skip("astronomically unlikely zero checksum")
        with pytest.raises(SymbolChecksumError) as exc_info:
            decode(b"HB1" + bad)
        assert exc_info.value.received == 0


class TestCorruption:
    @settings(max_examples=300)
    @given(uuids, st.integers(3, 34), st.sampled_from(BASE32))
    def test_single_substitution_never_yields_another_id(self, entity_id, position, replacement):
        payload = bytearray(encode(entity_id))
        assume(chr(payload[position]) != replacement)
        payload[position] = ord(replacement)
        try:
            decoded = decode(bytes(payload))
        except DecodeError:
            return
        pytest.fail(f"corrupted payload decoded to {decoded}")

    @given(st.binary(max_size=64))
    def test_arbitrary_bytes_decode_or_raise_decode_error(self, payload):
        try:
            result = decode(payload)
        except DecodeError:
            return
        assert encode(result) == payload

    @given(st.text(max_size=40))
    def test_arbitrary_text_decode_or_raise_decode_error(self, payload):
        try:
            result = decode(payload)
        except DecodeError:
            return
        assert encode(result) == payload.encode("ascii")

"""
Module: homebox_kernel.domain.symbol
Responsibility: Bijective mapping between an entity identifier and the byte
    payload printed inside a 2-D optical code (Data Matrix) on a label.
Architecture position: Kernel > Domain.  Pure functional core, zero I/O.
    Rasterising the payload into a bitmap is somebody else's job.

Payload layout (35 ASCII bytes):

    +--------+------------------------------------------------------+
    | "HB1"  | base32( id.bytes[16] || crc32(id.bytes) as u32 BE )  |
    | 3 B    | 32 B, RFC 4648 alphabet A-Z 2-7, no padding          |
    +--------+------------------------------------------------------+

Upper-case letters and digits encode compactly in Data Matrix C40 mode and
survive manual re-typing from a label.  The checksum catches substitution
errors a scanner lets through.

Invariants enforced:
    decode(encode(id)) == id for every identifier.
    Decoding is strict: exactly one byte string maps to each identifier.
    No case folding, no whitespace trimming.

Failure modes:
    - MalformedSymbolError: wrong type, non-ASCII, wrong length, wrong
      header, characters outside the alphabet.
    - UnsupportedSymbolVersionError: "HB" header with an unknown version.
    - SymbolChecksumError: well-formed payload whose checksum disagrees.
"""

import base64
import zlib
from uuid import UUID

from homebox_kernel.exceptions import (
    MalformedSymbolError,
    SymbolChecksumError,
    UnsupportedSymbolVersionError,
)

SymbolPayload = bytes

_MAGIC = b"HB"
_BODY_ALPHABET = frozenset(b"ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")
_ID_BYTES = 16
_CHECKSUM_BYTES = 4


class SymbolCodec:
    """Version 1 of the label payload format."""

    version: int = 1
    header: bytes = _MAGIC + b"1"
    payload_length: int = 35

    def encode(self, entity_id: UUID) -> SymbolPayload:
        if not isinstance(entity_id, UUID):
            raise TypeError(f"encode() expects a UUID, got {type(entity_id).__name__}")
        raw = entity_id.bytes
        checksum = zlib.crc32(raw).to_bytes(_CHECKSUM_BYTES, "big")
        body = base64.b32encode(raw + checksum)
        return self.header + body

    def decode(self, payload: object) -> UUID:
        raw = self._as_ascii(payload)

        if len(raw) != self.payload_length:
            raise MalformedSymbolError(
                f"expected {self.payload_length} bytes, got {len(raw)}"
            )
        if raw[: len(_MAGIC)] != _MAGIC:
            raise MalformedSymbolError("missing HB header")
        version = raw[len(_MAGIC) : len(self.header)]
        if version != self.header[len(_MAGIC) :]:
            raise UnsupportedSymbolVersionError(version.decode("ascii"))

        body = raw[len(self.header) :]
        if any(ch not in _BODY_ALPHABET for ch in body):
            raise MalformedSymbolError("character outside base32 alphabet")

        decoded = base64.b32decode(body)
        id_bytes = decoded[:_ID_BYTES]
        received = int.from_bytes(decoded[_ID_BYTES:], "big")
        expected = zlib.crc32(id_bytes)
        if received != expected:
            raise SymbolChecksumError(expected=expected, received=received)
        return UUID(bytes=id_bytes)

    @staticmethod
    def _as_ascii(payload: object) -> bytes:
        if isinstance(payload, str):
            try:
                return payload.encode("ascii")
            except UnicodeEncodeError as exc:
                raise MalformedSymbolError("payload is not ASCII") from exc
        if isinstance(payload, (bytes, bytearray, memoryview)):
            raw = bytes(payload)
            if not raw.isascii():
                raise MalformedSymbolError("payload is not ASCII")
            return raw
        raise MalformedSymbolError(
            f"payload must be bytes or str, got {type(payload).__name__}"
        )


_codec = SymbolCodec()


def encode(entity_id: UUID) -> SymbolPayload:
    return _codec.encode(entity_id)


def decode(payload: object) -> UUID:
    return _codec.decode(payload)

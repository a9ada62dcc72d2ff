"""
Encoding helpers for ES256 provider tokens.

- DER ECDSA signature -> raw r||s (the JWS form of an ES256 signature)
- Base64URL without padding (JWT segment encoding)
"""

import base64

from apns_gateway.core.errors import CodecError

# ASN.1 tags
DER_SEQUENCE = 0x30
DER_INTEGER = 0x02

# P-256 scalar width; the raw signature is two of these back to back
COMPONENT_SIZE = 32


def _read_length(der: bytes, pos: int) -> tuple[int, int]:
    """Read a DER length at pos; returns (length, next_pos)."""
    if pos >= len(der):
        raise CodecError("Truncated DER length")

    first = der[pos]
    pos += 1
    if first < 0x80:
        return first, pos

    num_bytes = first & 0x7F
    if num_bytes == 0 or num_bytes > 2:
        raise CodecError(f"Unsupported DER length encoding: 0x{first:02x}")
    if pos + num_bytes > len(der):
        raise CodecError("Truncated DER length")

    return int.from_bytes(der[pos:pos + num_bytes], "big"), pos + num_bytes


def _read_integer(der: bytes, pos: int, end: int) -> tuple[bytes, int]:
    """Read one INTEGER TLV; returns (value bytes, next_pos)."""
    if pos >= end or der[pos] != DER_INTEGER:
        raise CodecError("Expected DER INTEGER")

    length, pos = _read_length(der, pos + 1)
    if pos + length > end:
        raise CodecError("DER INTEGER length exceeds signature")
    return der[pos:pos + length], pos + length


def _right_align(value: bytes) -> bytes:
    """Strip sign padding and fit a big-endian integer into COMPONENT_SIZE bytes."""
    value = value.lstrip(b"\x00")
    if len(value) > COMPONENT_SIZE:
        value = value[-COMPONENT_SIZE:]
    return value.rjust(COMPONENT_SIZE, b"\x00")


def decode_der_signature(der: bytes) -> bytes:
    """
    Convert a DER ECDSA signature into the 64-byte r||s form.

    Input layout: 30 <len> 02 <rlen> <r> 02 <slen> <s>. Each integer is
    right-aligned into a 32-byte slot, left-padded with zeros when shorter
    and keeping the low-order 32 bytes when longer.

    Args:
        der: DER-encoded SEQUENCE { INTEGER r, INTEGER s }

    Returns:
        64 bytes: r (32) || s (32)

    Raises:
        CodecError: Wrong leading tag, missing INTEGER, or a length that
            runs past the input
    """
    if len(der) < 2 or der[0] != DER_SEQUENCE:
        raise CodecError("DER signature must start with a SEQUENCE")

    seq_len, pos = _read_length(der, 1)
    end = pos + seq_len
    if end > len(der):
        raise CodecError("DER SEQUENCE length exceeds signature")

    r, pos = _read_integer(der, pos, end)
    s, _ = _read_integer(der, pos, end)

    return _right_align(r) + _right_align(s)


def encode_url_safe(data: bytes) -> str:
    """
    Base64URL-encode bytes without padding.

    Standard base64 with '+' -> '-', '/' -> '_' and trailing '=' removed.
    Empty input yields an empty string.
    """
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def decode_url_safe(text: str) -> bytes:
    """Decode unpadded Base64URL text back into bytes."""
    padding = -len(text) % 4
    return base64.urlsafe_b64decode(text + "=" * padding)

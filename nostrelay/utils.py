"""Small helpers shared across the relay."""

from __future__ import annotations

import string
import time
from urllib.parse import urlsplit

__all__ = [
    "unix_time",
    "is_hex",
    "is_nip19",
    "nip19_to_hex",
    "is_lower_hex",
    "host_str",
]

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_CONST = 1
_BECH32M_CONST = 0x2BC830A3
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_HEX_DIGITS = frozenset(string.hexdigits)
_LOWER_HEX_DIGITS = frozenset("0123456789abcdef")


def unix_time() -> int:
    """Seconds since 1970, or 0 if the clock is before the epoch."""
    return max(int(time.time()), 0)


def is_hex(s: str) -> bool:
    """Whether the string holds only ASCII hex digits."""
    return all(c in _HEX_DIGITS for c in s)


def is_nip19(s: str) -> bool:
    """Whether the string looks like a NIP-19 ``npub`` or ``note`` identifier."""
    return s.startswith(("npub", "note"))


def is_lower_hex(s: str) -> bool:
    """Whether the string holds only lower-case hex digits."""
    return all(c in _LOWER_HEX_DIGITS for c in s)


def _polymod(values: list[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ value
        for bit, gen in enumerate(_GENERATOR):
            if (top >> bit) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _bech32_decode(s: str) -> tuple[str, list[int]]:
    """Decode a bech32 or bech32m string into its prefix and 5-bit data."""
    if any(ord(c) < 33 or ord(c) > 126 for c in s):
        raise ValueError("invalid character in bech32 string")
    if s.lower() != s and s.upper() != s:
        raise ValueError("mixed case in bech32 string")
    s = s.lower()
    sep = s.rfind("1")
    if sep < 1:
        raise ValueError("missing or misplaced bech32 separator")
    hrp, data_part = s[:sep], s[sep + 1 :]
    if len(data_part) < 6:
        raise ValueError("bech32 data part too short")
    try:
        data = [_BECH32_CHARSET.index(c) for c in data_part]
    except ValueError:
        raise ValueError("invalid bech32 data character") from None
    if _polymod(_hrp_expand(hrp) + data) not in (_BECH32_CONST, _BECH32M_CONST):
        raise ValueError("invalid bech32 checksum")
    return hrp, data[:-6]


def _from_base32(data: list[int]) -> bytes:
    acc = 0
    bits = 0
    out = bytearray()
    for value in data:
        acc = (acc << 5) | value
        bits += 5
        while bits >= 8:
            bits -= 8
            out.append((acc >> bits) & 0xFF)
    if bits >= 5 or (acc & ((1 << bits) - 1)):
        raise ValueError("invalid bech32 padding")
    return bytes(out)


def nip19_to_hex(s: str) -> str:
    """Decode a bech32 NIP-19 identifier into lower-case hex.

    Raises :class:`ValueError` if the string is not valid bech32.
    """
    _hrp, data = _bech32_decode(s)
    return _from_base32(data).hex()


def host_str(url: str) -> str | None:
    """The host part of an absolute URL, or ``None`` if there is none."""
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None
    if ":" in hostname:
        return f"[{hostname}]"
    return hostname
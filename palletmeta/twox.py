"""The xxHash64 digest and the wider "twox" hashes built on top of it."""

from __future__ import annotations

import struct

__all__ = ["xxh64", "twox_64", "twox_128", "twox_256"]

_MASK = (1 << 64) - 1

_P1 = 11400714785074694791
_P2 = 14029467366897019727
_P3 = 1609587929392839161
_P4 = 9650029242287828579
_P5 = 2870177450012600261


def _as_bytes(data: object) -> bytes:
    if isinstance(data, str):
        raise TypeError("expected a bytes-like object, not str")
    return bytes(memoryview(data))  # type: ignore[arg-type]


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK
    return (_rotl(acc, 31) * _P1) & _MASK


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK


def _avalanche(h: int) -> int:
    h ^= h >> 33
    h = (h * _P2) & _MASK
    h ^= h >> 29
    h = (h * _P3) & _MASK
    h ^= h >> 32
    return h


def xxh64(data: bytes, seed: int = 0) -> int:
    """Return the 64-bit xxHash of ``data`` under ``seed``."""
    buf = _as_bytes(data)
    seed &= _MASK
    length = len(buf)
    stripes_end = length - length % 32

    if length >= 32:
        accs = [
            (seed + _P1 + _P2) & _MASK,
            (seed + _P2) & _MASK,
            seed,
            (seed - _P1) & _MASK,
        ]
        for lanes in struct.iter_unpack("<4Q", buf[:stripes_end]):
            accs = [_round(acc, lane) for acc, lane in zip(accs, lanes)]
        h = sum(_rotl(acc, bits) for acc, bits in zip(accs, (1, 7, 12, 18))) & _MASK
        for acc in accs:
            h = _merge(h, acc)
    else:
        h = (seed + _P5) & _MASK

    h = (h + length) & _MASK

    tail = buf[stripes_end:]
    words_end = len(tail) - len(tail) % 8
    for (lane,) in struct.iter_unpack("<Q", tail[:words_end]):
        h ^= _round(0, lane)
        h = (_rotl(h, 27) * _P1 + _P4) & _MASK

    rest = tail[words_end:]
    if len(rest) >= 4:
        (word,) = struct.unpack_from("<I", rest)
        h ^= (word * _P1) & _MASK
        h = (_rotl(h, 23) * _P2 + _P3) & _MASK
        rest = rest[4:]

    for byte in rest:
        h ^= (byte * _P5) & _MASK
        h = (_rotl(h, 11) * _P1) & _MASK

    return _avalanche(h)


def _twox(data: bytes, rounds: int) -> bytes:
    buf = _as_bytes(data)
    return b"".join(xxh64(buf, seed).to_bytes(8, "little") for seed in range(rounds))


def twox_64(data: bytes) -> bytes:
    """Return the 8-byte twox hash of ``data``."""
    return _twox(data, 1)


def twox_128(data: bytes) -> bytes:
    """Return the 16-byte twox hash of ``data``."""
    return _twox(data, 2)


def twox_256(data: bytes) -> bytes:
    """Return the 32-byte twox hash of ``data``."""
    return _twox(data, 4)
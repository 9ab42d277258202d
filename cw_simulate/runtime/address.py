"""
Human <-> canonical address codec for the mocked chain.
======================================================

Addresses on the simulated chain are free-form human strings (``"alice"``,
``"contract_a"``). The execution backend sees them in a fixed-length
*canonical* binary form, produced by a cheap reversible scramble:

- encode the human address as UTF-8 and right-pad it with NUL bytes up to
  the canonical length;
- rotate left by the byte sum of the padded buffer;
- riffle-shuffle the buffer a fixed number of times.

``humanize`` reverses the process: it completes the riffle period, rotates
right by the (permutation invariant) byte sum and strips the NUL padding.

Both directions report a fixed gas cost alongside their result; the caller
decides which meter to charge.

Usage
-----
    codec = AddressCodec()
    canon, gas = codec.canonicalize("alice")     # 54 bytes, 55 gas
    human, gas = codec.humanize(canon)           # "alice", 44 gas

Notes
-----
* No case folding happens here; "Alice" and "alice" are distinct accounts.
* Embedded NUL bytes are rejected since they cannot survive padding removal.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Tuple

from ..errors import AddressError

CANONICALIZE_GAS = 55
HUMANIZE_GAS = 44

MIN_HUMAN_LENGTH = 3
DEFAULT_CANONICAL_LENGTH = 54

SHUFFLES_ENCODE = 18


def _byte_sum(data: bytes) -> int:
    return sum(data)


def _rotate_left(data: bytes, n: int) -> bytes:
    if not data:
        return data
    n %= len(data)
    return data[n:] + data[:n]


def _rotate_right(data: bytes, n: int) -> bytes:
    if not data:
        return data
    n %= len(data)
    return data[len(data) - n:] + data[: len(data) - n]


def riffle_shuffle(data: bytes) -> bytes:
    """Interleave right and left halves: r0, l0, r1, l1, ..."""
    if len(data) % 2:
        raise AddressError("riffle shuffle needs an even length", reason="Malformed")
    half = len(data) // 2
    left, right = data[:half], data[half:]
    out = bytearray(len(data))
    out[0::2] = right
    out[1::2] = left
    return bytes(out)


@lru_cache(maxsize=16)
def shuffle_period(length: int) -> int:
    """Number of riffle shuffles after which a buffer of `length` is restored."""
    if length == 0:
        return 1
    idx: List[int] = list(range(length))
    start = list(idx)
    half = length // 2
    period = 0
    while True:
        nxt = [0] * length
        nxt[0::2] = idx[half:]
        nxt[1::2] = idx[:half]
        idx = nxt
        period += 1
        if idx == start:
            return period


class AddressCodec:
    """Stateless address codec parametrised by the canonical length."""

    __slots__ = ("canonical_length", "min_length")

    def __init__(self, canonical_length: int = DEFAULT_CANONICAL_LENGTH, min_length: int = MIN_HUMAN_LENGTH) -> None:
        if canonical_length <= 0 or canonical_length % 2:
            raise ValueError("canonical_length must be a positive even number")
        if not 0 < min_length <= canonical_length:
            raise ValueError("min_length must be within 1..canonical_length")
        self.canonical_length = canonical_length
        self.min_length = min_length

    # ------------------------------------------------------------------ #

    def canonicalize(self, human: str) -> Tuple[bytes, int]:
        """Map a human address to its canonical bytes. Returns (canonical, gas)."""
        raw = human.encode("utf-8")
        if len(raw) < self.min_length:
            raise AddressError(
                f"Invalid input: human address too short (min {self.min_length} bytes)",
                reason="TooShort",
            )
        if len(raw) > self.canonical_length:
            raise AddressError(
                f"Invalid input: human address too long (max {self.canonical_length} bytes)",
                reason="TooLong",
            )
        if b"\x00" in raw:
            raise AddressError("Invalid input: human address contains a NUL byte", reason="Malformed")

        out = raw.ljust(self.canonical_length, b"\x00")
        out = _rotate_left(out, _byte_sum(out))
        for _ in range(SHUFFLES_ENCODE):
            out = riffle_shuffle(out)
        return out, CANONICALIZE_GAS

    def humanize(self, canonical: bytes) -> Tuple[str, int]:
        """Map canonical bytes back to the human address. Returns (human, gas)."""
        canonical = bytes(canonical)
        if len(canonical) != self.canonical_length:
            raise AddressError(
                f"Invalid input: canonical address length {len(canonical)} != {self.canonical_length}",
                reason="LengthMismatch",
            )

        period = shuffle_period(self.canonical_length)
        out = canonical
        for _ in range((period - SHUFFLES_ENCODE % period) % period):
            out = riffle_shuffle(out)
        out = _rotate_right(out, _byte_sum(out))

        trimmed = out.rstrip(b"\x00")
        if b"\x00" in trimmed or len(trimmed) < self.min_length:
            raise AddressError("Invalid input: canonical address is malformed", reason="Malformed")
        try:
            human = trimmed.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AddressError("Invalid input: canonical address is not valid UTF-8", reason="Malformed") from e
        return human, HUMANIZE_GAS

    def validate(self, human: str) -> bool:
        """True if `human` survives a canonicalize/humanize round trip."""
        try:
            canon, _ = self.canonicalize(human)
            back, _ = self.humanize(canon)
        except AddressError:
            return False
        return back == human


__all__ = [
    "AddressCodec",
    "CANONICALIZE_GAS",
    "HUMANIZE_GAS",
    "MIN_HUMAN_LENGTH",
    "DEFAULT_CANONICAL_LENGTH",
    "riffle_shuffle",
    "shuffle_period",
]

"""Plaintext bit-level encodings of integers, integer arrays and strings.

Bits are stored little-endian: index 0 holds the least significant bit.
Negative values use two's complement within the given bit width.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

__all__ = [
    "encode",
    "decode",
    "EncodedValue",
    "EncodedArray",
    "EncodedString",
]


def _check_width(bit_width: int) -> None:
    if bit_width <= 0:
        raise ValueError(f"bit width must be positive, got {bit_width}")


def encode(value: int, bit_width: int) -> list[bool]:
    """Return the little-endian bits of ``value`` in ``bit_width`` bits.

    Values outside the range of the width wrap around, as a cast would.
    """
    _check_width(bit_width)
    unsigned = int(value) & ((1 << bit_width) - 1)
    return [bool((unsigned >> j) & 1) for j in range(bit_width)]


def decode(bits: Iterable[bool], signed: bool = True) -> int:
    """Return the integer held by little-endian ``bits``."""
    bits = [bool(bit) for bit in bits]
    unsigned = sum(1 << j for j, bit in enumerate(bits) if bit)
    if signed and bits and bits[-1]:
        unsigned -= 1 << len(bits)
    return unsigned


class EncodedValue:
    """A single integer held as a list of bits."""

    def __init__(
        self, value: int = 0, *, bit_width: int = 32, signed: bool = True
    ) -> None:
        _check_width(bit_width)
        self.bit_width = bit_width
        self.signed = signed
        self.bits: list[bool] = encode(value, bit_width)

    def encode(self, value: int) -> None:
        """Replace the held bits with those of ``value``."""
        self.bits[:] = encode(value, self.bit_width)

    def decode(self) -> int:
        """Return the integer the bits represent."""
        return decode(self.bits, self.signed)

    def __len__(self) -> int:
        return self.bit_width

    def __iter__(self) -> Iterator[bool]:
        return iter(self.bits)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.decode()!r}, "
            f"bit_width={self.bit_width}, signed={self.signed})"
        )


class EncodedArray:
    """A fixed-length array of integers packed into one flat bit list."""

    def __init__(
        self, length: int, *, bit_width: int = 8, signed: bool = True
    ) -> None:
        if length < 0:
            raise ValueError(f"length must not be negative, got {length}")
        _check_width(bit_width)
        self.length = length
        self.element_width = bit_width
        self.signed = signed
        self.bits: list[bool] = [False] * (length * bit_width)

    @classmethod
    def from_values(
        cls, values: Iterable[int], *, bit_width: int = 8, signed: bool = True
    ) -> "EncodedArray":
        """Build an array holding ``values``."""
        values = list(values)
        array = cls(len(values), bit_width=bit_width, signed=signed)
        array.encode(values)
        return array

    def encode(self, values: Iterable[int]) -> None:
        """Replace the contents with ``values``; the length must match."""
        values = list(values)
        if len(values) != self.length:
            raise ValueError(
                f"expected {self.length} values, got {len(values)}"
            )
        self.bits = [
            bit for value in values for bit in encode(value, self.element_width)
        ]

    def _chunks(self) -> Iterator[list[bool]]:
        width = self.element_width
        for start in range(0, len(self.bits), width):
            yield self.bits[start : start + width]

    def decode(self) -> list[int]:
        """Return the integers held by the array."""
        return [decode(chunk, self.signed) for chunk in self._chunks()]

    def __getitem__(self, pos: int) -> list[bool]:
        if not -self.length <= pos < self.length:
            raise IndexError(f"index {pos} out of range for length {self.length}")
        pos %= self.length
        start = pos * self.element_width
        return self.bits[start : start + self.element_width]

    def __len__(self) -> int:
        return self.length

    @property
    def bit_width(self) -> int:
        """Total number of bits in the array."""
        return len(self.bits)


class EncodedString(EncodedArray):
    """A string held as an array of 8-bit characters."""

    def __init__(self, length: int, *, bit_width: int = 8, signed: bool = True) -> None:
        super().__init__(length, bit_width=bit_width, signed=signed)

    @classmethod
    def from_string(cls, text: str) -> "EncodedString":
        """Build an encoded string from the UTF-8 bytes of ``text``."""
        return cls.from_values(text.encode("utf-8"), bit_width=8, signed=True)

    def decode(self) -> str:  # type: ignore[override]
        """Return the text held by the array."""
        raw = bytes(value & 0xFF for value in super().decode())
        return raw.decode("utf-8")
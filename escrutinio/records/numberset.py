"""Codec for the A-P letter alphabet that packs a set of played numbers.

Each letter stands for a 4-bit pattern (``A`` = 0000 ... ``P`` = 1111). The
letter at position ``i`` and its bit ``j`` (most significant first) encode the
number ``i * 4 + j``; a set bit means that number was played.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

from ..errors import UnknownLetterError

ALPHABET = "ABCDEFGHIJKLMNOP"

LETTER_NIBBLES: Mapping[str, tuple[int, ...]] = MappingProxyType(
    {
        letter: tuple(int(bit) for bit in format(value, "04b"))
        for value, letter in enumerate(ALPHABET)
    }
)

_ZERO_NIBBLE = (0, 0, 0, 0)


@dataclass(frozen=True)
class NumberSet:
    """Ascending, duplicate-free set of numbers bounded by ``ceiling``.

    Instances are produced by :func:`decode_number_set` or
    :func:`number_set_from_values`; both enforce the ordering and bounds.
    """

    values: tuple[int, ...]
    ceiling: int

    def __iter__(self) -> Iterator[int]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __contains__(self, number: object) -> bool:
        return number in self.values

    def hits(self, drawn: Iterable[int]) -> int:
        """Return how many of ``drawn`` belong to this set."""
        played = set(self.values)
        return sum(1 for number in set(drawn) if number in played)


@dataclass(frozen=True)
class DecodedNumbers:
    """Outcome of decoding a letter sequence.

    ``unknown_letters`` lists letters outside the alphabet; they contributed
    no numbers to ``numbers``.
    """

    numbers: NumberSet
    unknown_letters: tuple[str, ...] = ()


def decode_number_set(
    sequence: str,
    *,
    ceiling: int,
    strict: bool = False,
) -> DecodedNumbers:
    """Decode ``sequence`` into the numbers it marks as played.

    Parameters
    ----------
    sequence : str
        Letter sequence as found in the record (case-insensitive).
    ceiling : int
        Highest number of the game. Positions encoding larger numbers are
        ignored even when bits are set.
    strict : bool, default: False
        Raise :class:`UnknownLetterError` instead of reporting unknown letters.

    Returns
    -------
    DecodedNumbers
        The decoded set and any letters that could not be interpreted.
    """
    numbers: set[int] = set()
    unknown: list[str] = []
    for position, raw_letter in enumerate(sequence.upper()):
        base = position * 4
        if base > ceiling:
            break
        nibble = LETTER_NIBBLES.get(raw_letter)
        if nibble is None:
            unknown.append(raw_letter)
            nibble = _ZERO_NIBBLE
        for bit_index, bit in enumerate(nibble):
            number = base + bit_index
            if bit and number <= ceiling:
                numbers.add(number)
    if unknown and strict:
        raise UnknownLetterError(tuple(unknown))
    return DecodedNumbers(
        numbers=NumberSet(values=tuple(sorted(numbers)), ceiling=ceiling),
        unknown_letters=tuple(unknown),
    )


def number_set_from_values(values: Iterable[int], *, ceiling: int) -> NumberSet:
    """Build a :class:`NumberSet` from plain integers, validating the range."""
    cleaned = set()
    for value in values:
        number = int(value)
        if number < 0 or number > ceiling:
            raise ValueError(f"Number {number} is outside the range 0-{ceiling}")
        cleaned.add(number)
    return NumberSet(values=tuple(sorted(cleaned)), ceiling=ceiling)


def encode_number_set(numbers: Iterable[int], *, length: int = 25) -> str:
    """Encode ``numbers`` into a letter sequence of ``length`` letters."""
    nibbles = [0] * length
    for number in numbers:
        position, bit_index = divmod(int(number), 4)
        if number < 0 or position >= length:
            raise ValueError(f"Number {number} does not fit in {length} letters")
        nibbles[position] |= 1 << (3 - bit_index)
    return "".join(ALPHABET[value] for value in nibbles)


def decode_plus_digit(char: str) -> Optional[int]:
    """Return the PLUS digit packed in ``char``, or ``None`` when absent/invalid."""
    letter = char.strip().upper()
    if len(letter) != 1 or letter not in LETTER_NIBBLES:
        return None
    value = ALPHABET.index(letter)
    return value if value <= 9 else None


__all__ = [
    "ALPHABET",
    "DecodedNumbers",
    "LETTER_NIBBLES",
    "NumberSet",
    "decode_number_set",
    "decode_plus_digit",
    "encode_number_set",
    "number_set_from_values",
]

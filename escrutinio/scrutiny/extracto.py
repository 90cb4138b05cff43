"""Official draw result (``extracto``) consumed by the scrutiny engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from ..errors import InvalidExtracto

PRIMARY_DRAW = "principal"


@dataclass(frozen=True)
class Extracto:
    """Drawn numbers for every sub-draw of a game.

    Attributes
    ----------
    draws : Mapping[str, tuple[int, ...]]
        Numbers drawn for each named sub-draw (e.g. ``"tradicional"``,
        ``"revancha"``). Games with a single draw use ``"principal"``.
    letters : Optional[str]
        Letters drawn (Poceada), concatenated.
    plus_digit : Optional[int]
        Supplementary digit drawn for bonus multipliers (Loto PLUS).
    required_hits : Mapping[str, int]
        Hit level that pays in "siempre sale" draws, keyed by draw name.
    """

    draws: Mapping[str, tuple[int, ...]]
    letters: Optional[str] = None
    plus_digit: Optional[int] = None
    required_hits: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        draws: Mapping[str, Iterable[int]],
        *,
        letters: Optional[Iterable[str]] = None,
        plus_digit: Optional[int] = None,
        required_hits: Optional[Mapping[str, int]] = None,
    ) -> "Extracto":
        """Normalise plain inputs (lists, letter lists) into an :class:`Extracto`."""
        letters_text = None
        if letters is not None:
            letters_text = "".join(str(letter).strip() for letter in letters).upper()
        return cls(
            draws=MappingProxyType({key: tuple(int(n) for n in values) for key, values in draws.items()}),
            letters=letters_text,
            plus_digit=plus_digit,
            required_hits=MappingProxyType(dict(required_hits or {})),
        )

    @classmethod
    def single(
        cls,
        numbers: Iterable[int],
        *,
        letters: Optional[Iterable[str]] = None,
        plus_digit: Optional[int] = None,
    ) -> "Extracto":
        """Shortcut for games with one draw."""
        return cls.build({PRIMARY_DRAW: numbers}, letters=letters, plus_digit=plus_digit)

    def numbers(self, draw_key: str) -> tuple[int, ...]:
        return self.draws.get(draw_key, ())

    def to_dict(self) -> dict:
        """Plain JSON-serialisable representation."""
        return {
            "draws": {key: list(values) for key, values in self.draws.items()},
            "letters": self.letters,
            "plus_digit": self.plus_digit,
            "required_hits": dict(self.required_hits),
        }


def validate_draw(
    extracto: Extracto,
    *,
    modality: str,
    draw_key: str,
    draw_size: int,
    ceiling: int,
    letters_size: int = 0,
) -> frozenset[int]:
    """Check one sub-draw of ``extracto`` and return it as a set.

    Raises
    ------
    InvalidExtracto
        If the sub-draw is missing, has the wrong size, repeats numbers or
        holds numbers outside ``0..ceiling``; also when ``letters_size`` letters
        are required and not supplied.
    """
    numbers = extracto.numbers(draw_key)
    if len(numbers) != draw_size:
        raise InvalidExtracto(
            modality, f"draw '{draw_key}' has {len(numbers)} numbers, expected {draw_size}"
        )
    drawn = frozenset(numbers)
    if len(drawn) != len(numbers):
        raise InvalidExtracto(modality, f"draw '{draw_key}' repeats numbers")
    out_of_range = sorted(n for n in drawn if n < 0 or n > ceiling)
    if out_of_range:
        raise InvalidExtracto(
            modality, f"draw '{draw_key}' has numbers outside 0-{ceiling}: {out_of_range}"
        )
    if letters_size:
        letters = extracto.letters or ""
        if len(letters) != letters_size:
            raise InvalidExtracto(modality, f"expected {letters_size} letters, got {len(letters)}")
    return drawn


__all__ = ["Extracto", "PRIMARY_DRAW", "validate_draw"]

"""Build NTF wager lines, mainly for fixtures and development data."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .layouts import (
    GENERIC_FIELDS,
    GENERIC_HEADER_LENGTH,
    GameFamily,
    family_for_code,
    layout_for,
)
from .numberset import ALPHABET, encode_number_set


def _place(buffer: list[str], start: int, length: int, value: str, *, pad: str = " ", right: bool = False) -> None:
    if len(value) > length:
        raise ValueError(f"Value {value!r} does not fit in {length} positions")
    text = value.rjust(length, pad) if right else value.ljust(length, pad)
    buffer[start : start + length] = list(text)


def build_line(
    game_code: str,
    *,
    draw_number: int,
    numbers: Iterable[int],
    jurisdiction: str = "51",
    agency: str = "00001",
    ticket: str = "1",
    ordinal: str = "01",
    amount: int = 0,
    sold_at: Optional[datetime] = None,
    cancelled_at: Optional[datetime] = None,
    letters: str = "",
    instancias: str = "1",
    plus_digit: Optional[int] = None,
    declared_count: Optional[int] = None,
    sequence: Optional[str] = None,
) -> str:
    """Return a fixed-width line with the given content.

    ``sequence`` overrides the encoded number sequence verbatim, and
    ``declared_count`` the numbers count field, so callers can produce
    deliberately inconsistent lines.
    """
    family = family_for_code(game_code)
    layout = layout_for(family)
    numbers = sorted(set(numbers))
    length = layout.min_length + (1 if plus_digit is not None else 0)
    buffer = [" "] * max(length, GENERIC_HEADER_LENGTH)

    def generic(name: str, value: str, **kwargs) -> None:
        spec = GENERIC_FIELDS[name]
        _place(buffer, spec.start, spec.length, value, **kwargs)

    def body(name: str, value: str, **kwargs) -> None:
        spec = layout.field(name)
        _place(buffer, spec.start, spec.length, value, **kwargs)

    generic("VERSION_GENERICA", "02")
    generic("JUEGO", game_code)
    generic("NUMERO_SORTEO", str(draw_number), pad="0", right=True)
    generic("CANTIDAD_SORTEOS", "01")
    generic("PROVINCIA", jurisdiction, pad="0", right=True)
    generic("AGENCIA", agency, pad="0", right=True)
    generic("NUMERO_TICKET", ticket, pad="0", right=True)
    generic("ORDINAL_APUESTA", ordinal)
    generic("VALOR_APUESTA", str(amount), pad="0", right=True)
    generic("VALOR_REAL_APUESTA", str(amount), pad="0", right=True)
    if sold_at is not None:
        generic("FECHA_VENTA", sold_at.strftime("%Y%m%d"))
        generic("HORA_VENTA", sold_at.strftime("%H%M%S"))
    if cancelled_at is not None:
        generic("FECHA_CANCELACION", cancelled_at.strftime("%Y%m%d"))
        generic("HORA_CANCELACION", cancelled_at.strftime("%H%M%S"))

    count = len(numbers) if declared_count is None else declared_count
    body("VERSION_ESPECIFICA", "01")
    body("CANTIDAD_NUMEROS", str(count), pad="0", right=True)
    body("SECUENCIA_NUMEROS", sequence if sequence is not None else encode_number_set(numbers))
    if family is GameFamily.POCEADA:
        body("LETRAS", letters.upper())
    elif family in (GameFamily.QUINI6, GameFamily.BRINCO):
        body("INSTANCIAS", instancias)
        body("APUESTAS_SIMPLES", "1", pad="0", right=True)
    else:
        body("MODALIDAD", "01")
        if plus_digit is not None:
            body("NUMERO_PLUS", ALPHABET[plus_digit])
    return "".join(buffer)


__all__ = ["build_line"]

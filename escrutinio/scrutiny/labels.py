"""Spanish wording used by prize reports."""

from __future__ import annotations

VACANT_LABEL = "VACANTE"

_NUMBER_WORDS = {
    1: "UN",
    2: "DOS",
    3: "TRES",
    4: "CUATRO",
    5: "CINCO",
    6: "SEIS",
    7: "SIETE",
    8: "OCHO",
    9: "NUEVE",
    10: "DIEZ",
}


def winners_text(count: int) -> str:
    """Return the report wording for ``count`` winners.

    Examples
    --------
    >>> winners_text(0)
    'VACANTE'
    >>> winners_text(1)
    'UN (1) GANADOR'
    >>> winners_text(12)
    '12 GANADORES'
    """
    if count < 0:
        raise ValueError("Winner count cannot be negative")
    if count == 0:
        return VACANT_LABEL
    word = _NUMBER_WORDS.get(count)
    noun = "GANADOR" if count == 1 else "GANADORES"
    if word is None:
        return f"{count} {noun}"
    return f"{word} ({count}) {noun}"


__all__ = ["VACANT_LABEL", "winners_text"]

"""Exception taxonomy shared by the decoder and the scrutiny engine."""

from __future__ import annotations

from typing import Optional


class ScrutinyError(Exception):
    """Base class for every error raised by the escrutinio core."""


class MalformedRecord(ScrutinyError):
    """A wager line could not be decoded.

    The decoder catches this per line and counts it; it never aborts a batch.
    """

    def __init__(self, message: str, *, line_number: Optional[int] = None) -> None:
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class ShortLine(MalformedRecord):
    """The line is shorter than the minimum length of its game family."""


class UnsupportedCoverage(ScrutinyError):
    """The amount of numbers played is outside the range the game supports."""

    def __init__(
        self,
        played: int,
        supported: tuple[int, int],
        *,
        line_number: Optional[int] = None,
    ) -> None:
        self.played = played
        self.supported = supported
        self.line_number = line_number
        low, high = supported
        prefix = f"line {line_number}: " if line_number is not None else ""
        super().__init__(
            f"{prefix}{played} numbers played, supported range is {low}-{high}"
        )


class UnknownLetterError(ScrutinyError):
    """Raised in strict mode when a number sequence holds a letter outside A-P."""

    def __init__(self, letters: tuple[str, ...]) -> None:
        self.letters = letters
        super().__init__(f"Unknown letters in number sequence: {', '.join(letters)}")


class InvalidExtracto(ScrutinyError):
    """The draw result does not satisfy the shape required by a modality."""

    def __init__(self, modality: str, reason: str) -> None:
        self.modality = modality
        self.reason = reason
        super().__init__(f"Invalid extracto for '{modality}': {reason}")


class MalformedInputError(ScrutinyError):
    """Too many lines of an input file could not be decoded."""

    def __init__(self, ratio: float, threshold: float) -> None:
        self.ratio = ratio
        self.threshold = threshold
        super().__init__(
            f"{ratio:.2%} of the lines are malformed (threshold {threshold:.2%}); "
            "the file probably belongs to another game or format"
        )


__all__ = [
    "InvalidExtracto",
    "MalformedInputError",
    "MalformedRecord",
    "ScrutinyError",
    "ShortLine",
    "UnknownLetterError",
    "UnsupportedCoverage",
]

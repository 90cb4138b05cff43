"""Decode NTF wager lines into typed :class:`WagerRecord` objects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Mapping, Optional, Union

from ..errors import (
    MalformedInputError,
    MalformedRecord,
    ShortLine,
    UnknownLetterError,
    UnsupportedCoverage,
)
from .layouts import (
    GENERIC_FIELDS,
    LOCAL_JURISDICTION,
    LOTO_MODALITY_CODES,
    WEB_SALE_AGENCY,
    BodyLayout,
    GameFamily,
    family_for_code,
    layout_for,
)
from .numberset import NumberSet, decode_number_set, decode_plus_digit
from ..combinatorics import elementary_bets

logger = logging.getLogger(__name__)

NTF_ENCODING = "latin-1"

_SINGLE_RECORD_ORDINALS = frozenset({"01", "1", ""})


@dataclass(frozen=True)
class PoceadaBody:
    letters: str


@dataclass(frozen=True)
class Quini6Body:
    instancias: str
    simple_bets: int


@dataclass(frozen=True)
class LotoBody:
    """Body shared by Loto and Loto5 records."""

    modality: str
    plus_digit: Optional[int] = None


@dataclass(frozen=True)
class BrincoBody:
    instancias: str


WagerBody = Union[PoceadaBody, Quini6Body, LotoBody, BrincoBody]


@dataclass(frozen=True)
class DecodeWarning:
    """Soft problem found while decoding a line that did not reject it."""

    code: str
    detail: str
    line_number: int = 0


@dataclass(frozen=True)
class WagerRecord:
    """One bet as exported by the vending network.

    Attributes
    ----------
    game_code : str
        Two digit NTF game code (e.g. ``"82"``).
    family : GameFamily
        Game family derived from ``game_code``.
    draw_number : int
        Draw the bet was sold for.
    jurisdiction_code, selling_point_code : str
        Province code and five digit agency code.
    ticket_number, ordinal : str
        Ticket identifier and bet ordinal inside the ticket.
    sale_timestamp, cancel_timestamp : Optional[datetime]
        ``cancel_timestamp`` is set exactly when the record was cancelled.
    bet_amount : int
        Stake in minor units.
    numbers_played : NumberSet
        Decoded numbers.
    covered_count : int
        Amount of numbers played (``n``).
    bet_count : int
        Elementary bets the wager stands for, ``C(n, k)``.
    letters_played : Optional[str]
        Four letters played (Poceada only).
    body : WagerBody
        Family specific fields.
    line_number : int
        1-based line number in the source file.
    """

    game_code: str
    family: GameFamily
    draw_number: int
    jurisdiction_code: str
    selling_point_code: str
    ticket_number: str
    ordinal: str
    sale_timestamp: Optional[datetime]
    cancel_timestamp: Optional[datetime]
    bet_amount: int
    numbers_played: NumberSet
    covered_count: int
    bet_count: int
    letters_played: Optional[str]
    body: WagerBody
    line_number: int = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_timestamp is not None

    @property
    def agency_key(self) -> str:
        return f"{self.jurisdiction_code}{self.selling_point_code}"

    @property
    def is_web_sale(self) -> bool:
        return self.agency_key == WEB_SALE_AGENCY

    @property
    def is_local(self) -> bool:
        return self.jurisdiction_code == LOCAL_JURISDICTION

    @property
    def counts_as_ticket(self) -> bool:
        """Only the first bet of a ticket counts as a registro."""
        return self.ordinal in _SINGLE_RECORD_ORDINALS


@dataclass(frozen=True)
class DecodedLine:
    record: WagerRecord
    warnings: tuple[DecodeWarning, ...] = ()


@dataclass
class DecodedBatch:
    """Records decoded from a file plus the counters of what was dropped.

    Batches built from separate shards of the same file can be combined with
    :meth:`merge`; every counter is a plain sum.
    """

    records: list[WagerRecord] = field(default_factory=list)
    total_lines: int = 0
    blank_lines: int = 0
    short_lines: int = 0
    malformed: int = 0
    unsupported_coverage: int = 0
    foreign: int = 0
    warnings: list[DecodeWarning] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.short_lines + self.malformed + self.unsupported_coverage

    @property
    def malformed_ratio(self) -> float:
        """Share of non-blank lines that yielded no record, other games included."""
        considered = self.total_lines - self.blank_lines
        if considered <= 0:
            return 0.0
        return (self.skipped + self.foreign) / considered

    @property
    def active_records(self) -> list[WagerRecord]:
        return [record for record in self.records if not record.cancelled]

    @property
    def cancelled_records(self) -> list[WagerRecord]:
        return [record for record in self.records if record.cancelled]

    def merge(self, other: "DecodedBatch") -> "DecodedBatch":
        merged = DecodedBatch(
            records=[*self.records, *other.records],
            total_lines=self.total_lines + other.total_lines,
            blank_lines=self.blank_lines + other.blank_lines,
            short_lines=self.short_lines + other.short_lines,
            malformed=self.malformed + other.malformed,
            unsupported_coverage=self.unsupported_coverage + other.unsupported_coverage,
            foreign=self.foreign + other.foreign,
            warnings=[*self.warnings, *other.warnings],
        )
        merged.records.sort(key=lambda record: record.line_number)
        return merged

    def summary(self) -> dict[str, int]:
        return {
            "total_lines": self.total_lines,
            "records": len(self.records),
            "blank_lines": self.blank_lines,
            "short_lines": self.short_lines,
            "malformed": self.malformed,
            "unsupported_coverage": self.unsupported_coverage,
            "foreign": self.foreign,
            "warnings": len(self.warnings),
        }


def parse_minor_units(raw: str, *, name: str, line_number: int = 0) -> Optional[int]:
    """Parse an ``NNNNNNNNDD`` money field into minor units.

    Returns ``None`` for a blank field so the caller can record the defaulting.
    """
    text = raw.strip()
    if not text:
        return None
    if not text.isdigit():
        raise MalformedRecord(f"{name} is not numeric: {raw!r}", line_number=line_number)
    return int(text)


def _parse_int(raw: str, *, name: str, line_number: int) -> int:
    text = raw.strip()
    if not text.isdigit():
        raise MalformedRecord(f"{name} is not numeric: {raw!r}", line_number=line_number)
    return int(text)


def _parse_timestamp(date_raw: str, time_raw: str) -> Optional[datetime]:
    date_text = date_raw.strip()
    if not date_text or set(date_text) == {"0"}:
        return None
    time_text = time_raw.strip() or "000000"
    return datetime.strptime(date_text + time_text.zfill(6), "%Y%m%d%H%M%S")


def _generic(line: str, name: str) -> str:
    return GENERIC_FIELDS[name].extract(line)


def _parse_poceada_body(line: str, layout: BodyLayout, game_code: str) -> WagerBody:
    return PoceadaBody(letters=layout.field("LETRAS").extract(line).strip().upper())


def _parse_quini6_body(line: str, layout: BodyLayout, game_code: str) -> WagerBody:
    simple_raw = layout.field("APUESTAS_SIMPLES").extract(line).strip()
    return Quini6Body(
        instancias=layout.field("INSTANCIAS").extract(line).strip() or "1",
        simple_bets=int(simple_raw) if simple_raw.isdigit() else 0,
    )


def _parse_loto_body(line: str, layout: BodyLayout, game_code: str) -> WagerBody:
    plus_digit = None
    if layout.plus_field is not None and game_code == "11":
        plus_spec = layout.field(layout.plus_field)
        if len(line) >= plus_spec.end:
            plus_digit = decode_plus_digit(plus_spec.extract(line))
    return LotoBody(modality=LOTO_MODALITY_CODES.get(game_code, "tradicional"), plus_digit=plus_digit)


def _parse_loto5_body(line: str, layout: BodyLayout, game_code: str) -> WagerBody:
    return LotoBody(modality="tradicional")


def _parse_brinco_body(line: str, layout: BodyLayout, game_code: str) -> WagerBody:
    return BrincoBody(instancias=layout.field("INSTANCIAS").extract(line).strip() or "1")


_BODY_PARSERS: Mapping[GameFamily, Callable[[str, BodyLayout, str], WagerBody]] = {
    GameFamily.POCEADA: _parse_poceada_body,
    GameFamily.QUINI6: _parse_quini6_body,
    GameFamily.LOTO: _parse_loto_body,
    GameFamily.LOTO5: _parse_loto5_body,
    GameFamily.BRINCO: _parse_brinco_body,
}


def decode_line(
    line: str,
    *,
    line_number: int = 0,
    strict_letters: bool = False,
) -> DecodedLine:
    """Decode a single NTF line.

    Parameters
    ----------
    line : str
        Raw line without its trailing newline.
    line_number : int, default: 0
        Position of the line in its file, used in errors and warnings.
    strict_letters : bool, default: False
        Raise on letters outside the A-P alphabet instead of warning.

    Returns
    -------
    DecodedLine
        The typed record together with the soft warnings raised on the way.

    Raises
    ------
    KeyError
        If the line carries a game code no layout is known for.
    ShortLine
        If the line is shorter than its family's minimum length.
    MalformedRecord
        If a mandatory field cannot be parsed.
    UnsupportedCoverage
        If the amount of numbers played is outside the game's range.
    UnknownLetterError
        Only with ``strict_letters`` enabled.
    """
    game_code = _generic(line, "JUEGO")
    family = family_for_code(game_code)
    layout = layout_for(family)
    if len(line) < layout.min_length:
        raise ShortLine(
            f"{len(line)} characters, {family.value} needs {layout.min_length}",
            line_number=line_number,
        )

    warnings: list[DecodeWarning] = []

    draw_number = _parse_int(_generic(line, "NUMERO_SORTEO"), name="NUMERO_SORTEO", line_number=line_number)

    try:
        cancel_timestamp = _parse_timestamp(
            _generic(line, "FECHA_CANCELACION"), _generic(line, "HORA_CANCELACION")
        )
    except ValueError as exc:
        raise MalformedRecord(f"invalid cancellation date: {exc}", line_number=line_number) from exc

    try:
        sale_timestamp = _parse_timestamp(_generic(line, "FECHA_VENTA"), _generic(line, "HORA_VENTA"))
    except ValueError:
        sale_timestamp = None
        warnings.append(
            DecodeWarning("sale_timestamp", _generic(line, "FECHA_VENTA"), line_number)
        )

    bet_amount = parse_minor_units(
        _generic(line, "VALOR_APUESTA"), name="VALOR_APUESTA", line_number=line_number
    )
    if bet_amount is None:
        bet_amount = 0
        warnings.append(DecodeWarning("blank_amount", "VALOR_APUESTA", line_number))

    try:
        decoded = decode_number_set(
            layout.field("SECUENCIA_NUMEROS").extract(line),
            ceiling=layout.number_ceiling,
            strict=strict_letters,
        )
    except UnknownLetterError as exc:
        raise MalformedRecord(str(exc), line_number=line_number) from exc
    if decoded.unknown_letters:
        warnings.append(
            DecodeWarning("unknown_letter", "".join(decoded.unknown_letters), line_number)
        )
    numbers = decoded.numbers

    count_raw = layout.field("CANTIDAD_NUMEROS").extract(line).strip()
    if count_raw.isdigit():
        covered_count = int(count_raw)
    else:
        covered_count = len(numbers)
        warnings.append(DecodeWarning("blank_count", count_raw, line_number))

    low, high = layout.coverage
    if not low <= covered_count <= high:
        raise UnsupportedCoverage(covered_count, layout.coverage, line_number=line_number)
    if len(numbers) != covered_count:
        raise MalformedRecord(
            f"declared {covered_count} numbers but the sequence holds {len(numbers)}",
            line_number=line_number,
        )

    body = _BODY_PARSERS[family](line, layout, game_code)
    letters = body.letters if isinstance(body, PoceadaBody) else None

    record = WagerRecord(
        game_code=game_code,
        family=family,
        draw_number=draw_number,
        jurisdiction_code=_generic(line, "PROVINCIA").strip(),
        selling_point_code=_generic(line, "AGENCIA").strip(),
        ticket_number=_generic(line, "NUMERO_TICKET").strip(),
        ordinal=_generic(line, "ORDINAL_APUESTA").strip(),
        sale_timestamp=sale_timestamp,
        cancel_timestamp=cancel_timestamp,
        bet_amount=bet_amount,
        numbers_played=numbers,
        covered_count=covered_count,
        bet_count=elementary_bets(covered_count, layout.pick_size),
        letters_played=letters or None,
        body=body,
        line_number=line_number,
    )
    return DecodedLine(record=record, warnings=tuple(warnings))


def decode_lines(
    lines: Iterable[str],
    *,
    family: Optional[GameFamily] = None,
    strict_letters: bool = False,
    first_line_number: int = 1,
) -> DecodedBatch:
    """Decode every line, counting the ones that have to be skipped.

    Parameters
    ----------
    lines : Iterable[str]
        Lines of an NTF file; trailing newlines are stripped.
    family : Optional[GameFamily], default: None
        When given, lines of other game families are counted as ``foreign``.
        Lines with an unknown game code are always malformed.
    strict_letters : bool, default: False
        Forwarded to :func:`decode_line`; a line failing the strict check is
        counted as malformed.
    first_line_number : int, default: 1
        Number assigned to the first line (useful when decoding shards).

    Returns
    -------
    DecodedBatch
        Decoded records and counters.
    """
    batch = DecodedBatch()
    for offset, raw in enumerate(lines):
        line_number = first_line_number + offset
        batch.total_lines += 1
        line = raw.rstrip("\r\n")
        if not line.strip():
            batch.blank_lines += 1
            continue
        try:
            line_family = family_for_code(_generic(line, "JUEGO"))
        except KeyError:
            batch.malformed += 1
            logger.debug(f"Line {line_number}: unknown game code {_generic(line, 'JUEGO')!r}")
            continue
        if family is not None and line_family is not family:
            batch.foreign += 1
            continue
        try:
            decoded = decode_line(line, line_number=line_number, strict_letters=strict_letters)
        except ShortLine as exc:
            batch.short_lines += 1
            logger.debug(str(exc))
            continue
        except UnsupportedCoverage as exc:
            batch.unsupported_coverage += 1
            logger.debug(str(exc))
            continue
        except MalformedRecord as exc:
            batch.malformed += 1
            logger.debug(str(exc))
            continue
        batch.records.append(decoded.record)
        batch.warnings.extend(decoded.warnings)
    return batch


def decode_text(
    content: Union[str, bytes],
    *,
    family: Optional[GameFamily] = None,
    strict_letters: bool = False,
) -> DecodedBatch:
    """Decode the full content of an NTF file (``bytes`` are read as latin-1)."""
    if isinstance(content, bytes):
        content = content.decode(NTF_ENCODING)
    # Only "\n" ends a record; text fields may hold \x85, \x0c and similar bytes
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return decode_lines(lines, family=family, strict_letters=strict_letters)


def check_malformed_ratio(
    batch: DecodedBatch,
    *,
    threshold: float,
    fail: bool = False,
) -> bool:
    """Return ``True`` when ``batch`` exceeds the malformed ``threshold``.

    The condition is logged as a warning; with ``fail`` enabled a
    :class:`MalformedInputError` is raised instead.
    """
    ratio = batch.malformed_ratio
    if ratio <= threshold:
        return False
    if fail:
        raise MalformedInputError(ratio, threshold)
    logger.warning(
        f"{ratio:.2%} of the lines were skipped (threshold {threshold:.2%}); "
        "check that the file matches the selected game"
    )
    return True


__all__ = [
    "BrincoBody",
    "DecodeWarning",
    "DecodedBatch",
    "DecodedLine",
    "LotoBody",
    "NTF_ENCODING",
    "PoceadaBody",
    "Quini6Body",
    "WagerBody",
    "WagerRecord",
    "check_malformed_ratio",
    "decode_line",
    "decode_lines",
    "decode_text",
    "parse_minor_units",
]

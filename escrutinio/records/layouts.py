"""Fixed-width NTF record layouts.

Every wager line starts with a 200 position generic header shared by all
games, followed by a body whose layout depends on the game family. The tables
in this module are built once at import time and exposed as read-only
mappings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class FieldSpec:
    """Position of a field inside a record (0-based ``start``)."""

    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length

    def extract(self, line: str) -> str:
        """Return the raw (untrimmed) slice of ``line`` covered by this field."""
        return line[self.start : self.end]


GENERIC_HEADER_LENGTH = 200

GENERIC_FIELDS: Mapping[str, FieldSpec] = MappingProxyType(
    {
        "VERSION_GENERICA": FieldSpec(0, 2),
        "JUEGO": FieldSpec(2, 2),
        "NUMERO_SORTEO": FieldSpec(4, 6),
        "CANTIDAD_SORTEOS": FieldSpec(10, 2),
        "PROVEEDOR": FieldSpec(12, 1),
        "PROVINCIA": FieldSpec(13, 2),
        "AGENCIA": FieldSpec(15, 5),
        "DIGITO_VERIF": FieldSpec(20, 1),
        "ID_TERMINAL_VENTA": FieldSpec(21, 8),
        "ID_USUARIO_VENTA": FieldSpec(29, 8),
        "MODO_VENTA": FieldSpec(37, 2),
        "FECHA_VENTA": FieldSpec(39, 8),
        "HORA_VENTA": FieldSpec(47, 6),
        "ID_TERMINAL_CANCEL": FieldSpec(53, 8),
        "ID_USUARIO_CANCEL": FieldSpec(61, 8),
        "MODO_CANCELACION": FieldSpec(69, 1),
        "FECHA_CANCELACION": FieldSpec(70, 8),
        "HORA_CANCELACION": FieldSpec(78, 6),
        "CANTIDAD_PARTES": FieldSpec(84, 2),
        "NUMERO_TICKET": FieldSpec(86, 12),
        "ORDINAL_APUESTA": FieldSpec(98, 2),
        "TIPO_DOCUMENTO": FieldSpec(100, 1),
        "NUMERO_DOCUMENTO": FieldSpec(101, 12),
        "AGENCIA_AMIGA": FieldSpec(113, 8),
        "VALOR_APUESTA": FieldSpec(121, 10),
        "VALOR_REAL_APUESTA": FieldSpec(131, 10),
        "CODIGO_PROMOCION": FieldSpec(141, 10),
        "ID_SESION": FieldSpec(151, 12),
        "ID_EXTERNO_TICKET": FieldSpec(163, 30),
        "RESERVADO": FieldSpec(193, 7),
    }
)

# Jurisdiction whose selling points are settled one by one (CABA).
LOCAL_JURISDICTION = "51"

# Agency key used for web sales; excluded from agent commissions.
WEB_SALE_AGENCY = "5188880"


class GameFamily(str, Enum):
    """Game families sharing a body layout and a scrutiny rule set."""

    POCEADA = "poceada"
    QUINI6 = "quini6"
    LOTO = "loto"
    LOTO5 = "loto5"
    BRINCO = "brinco"


@dataclass(frozen=True)
class BodyLayout:
    """Game-specific part of the record plus the numeric constraints of the game.

    Attributes
    ----------
    family : GameFamily
        Family the layout belongs to.
    fields : Mapping[str, FieldSpec]
        Body fields keyed by their NTF name.
    min_length : int
        Lines shorter than this are skipped.
    number_ceiling : int
        Highest number that can be played; the codec ignores bits above it.
    pick_size : int
        Numbers per elementary bet (``k``).
    coverage : tuple[int, int]
        Inclusive range of numbers a single wager may play (``n``).
    letters_field, plus_field : Optional[str]
        Names of the optional letters / PLUS digit fields.
    """

    family: GameFamily
    fields: Mapping[str, FieldSpec]
    min_length: int
    number_ceiling: int
    pick_size: int
    coverage: tuple[int, int]
    letters_field: Optional[str] = None
    plus_field: Optional[str] = None

    def field(self, name: str) -> FieldSpec:
        try:
            return self.fields[name]
        except KeyError as exc:
            raise KeyError(f"{self.family.value} records have no field '{name}'") from exc


_QUINI6_FIELDS = MappingProxyType(
    {
        "VERSION_ESPECIFICA": FieldSpec(200, 2),
        "INSTANCIAS": FieldSpec(202, 1),
        "APUESTAS_SIMPLES": FieldSpec(203, 7),
        "CANTIDAD_NUMEROS": FieldSpec(210, 2),
        "SECUENCIA_NUMEROS": FieldSpec(212, 25),
    }
)

_LOTO_FIELDS = MappingProxyType(
    {
        "VERSION_ESPECIFICA": FieldSpec(200, 2),
        "MODALIDAD": FieldSpec(202, 2),
        "CANTIDAD_SORTEOS_ESP": FieldSpec(204, 2),
        "TIPO_APUESTA": FieldSpec(206, 2),
        "CANTIDAD_NUMEROS": FieldSpec(210, 2),
        "SECUENCIA_NUMEROS": FieldSpec(212, 25),
        "NUMERO_PLUS": FieldSpec(237, 1),
    }
)

BODY_LAYOUTS: Mapping[GameFamily, BodyLayout] = MappingProxyType(
    {
        GameFamily.POCEADA: BodyLayout(
            family=GameFamily.POCEADA,
            fields=MappingProxyType(
                {
                    "VERSION_ESPECIFICA": FieldSpec(200, 2),
                    "LETRAS": FieldSpec(202, 4),
                    "CANTIDAD_NUMEROS": FieldSpec(206, 2),
                    "SECUENCIA_NUMEROS": FieldSpec(208, 25),
                }
            ),
            min_length=233,
            number_ceiling=99,
            pick_size=8,
            coverage=(8, 15),
            letters_field="LETRAS",
        ),
        GameFamily.QUINI6: BodyLayout(
            family=GameFamily.QUINI6,
            fields=_QUINI6_FIELDS,
            min_length=237,
            number_ceiling=45,
            pick_size=6,
            coverage=(6, 12),
        ),
        GameFamily.LOTO: BodyLayout(
            family=GameFamily.LOTO,
            fields=_LOTO_FIELDS,
            min_length=237,
            number_ceiling=45,
            pick_size=6,
            coverage=(6, 18),
            plus_field="NUMERO_PLUS",
        ),
        GameFamily.LOTO5: BodyLayout(
            family=GameFamily.LOTO5,
            fields=_LOTO_FIELDS,
            min_length=237,
            number_ceiling=36,
            pick_size=5,
            coverage=(5, 18),
        ),
        GameFamily.BRINCO: BodyLayout(
            family=GameFamily.BRINCO,
            fields=_QUINI6_FIELDS,
            min_length=237,
            number_ceiling=41,
            pick_size=6,
            coverage=(6, 12),
        ),
    }
)

GAME_CODES: Mapping[str, GameFamily] = MappingProxyType(
    {
        "82": GameFamily.POCEADA,
        "69": GameFamily.QUINI6,
        "07": GameFamily.LOTO,
        "08": GameFamily.LOTO,
        "09": GameFamily.LOTO,
        "10": GameFamily.LOTO,
        "11": GameFamily.LOTO,
        "05": GameFamily.LOTO5,
        "13": GameFamily.BRINCO,
    }
)

# Loto sells each modality under its own game code.
LOTO_MODALITY_CODES: Mapping[str, str] = MappingProxyType(
    {
        "07": "tradicional",
        "08": "match",
        "09": "desquite",
        "10": "sale_o_sale",
        "11": "multiplicador",
    }
)


def family_for_code(game_code: str) -> GameFamily:
    """Return the game family that sells under ``game_code``."""
    try:
        return GAME_CODES[game_code]
    except KeyError as exc:
        raise KeyError(f"Unknown game code '{game_code}'") from exc


def layout_for(family: GameFamily) -> BodyLayout:
    """Return the body layout of ``family``."""
    return BODY_LAYOUTS[family]


def codes_for_family(family: GameFamily) -> frozenset[str]:
    """Return every game code that belongs to ``family``."""
    return frozenset(code for code, fam in GAME_CODES.items() if fam is family)


__all__ = [
    "BODY_LAYOUTS",
    "BodyLayout",
    "FieldSpec",
    "GAME_CODES",
    "GENERIC_FIELDS",
    "GENERIC_HEADER_LENGTH",
    "GameFamily",
    "LOCAL_JURISDICTION",
    "LOTO_MODALITY_CODES",
    "WEB_SALE_AGENCY",
    "codes_for_family",
    "family_for_code",
    "layout_for",
]

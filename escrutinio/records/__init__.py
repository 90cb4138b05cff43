"""Decoding of NTF wager files."""

from .layouts import (
    BODY_LAYOUTS,
    GAME_CODES,
    GENERIC_FIELDS,
    LOCAL_JURISDICTION,
    WEB_SALE_AGENCY,
    BodyLayout,
    FieldSpec,
    GameFamily,
    family_for_code,
    layout_for,
)
from .numberset import (
    DecodedNumbers,
    NumberSet,
    decode_number_set,
    decode_plus_digit,
    encode_number_set,
    number_set_from_values,
)
from .decoder import (
    DecodeWarning,
    DecodedBatch,
    WagerRecord,
    check_malformed_ratio,
    decode_line,
    decode_lines,
    decode_text,
)
from .encoder import build_line

__all__ = [
    "BODY_LAYOUTS",
    "BodyLayout",
    "DecodeWarning",
    "DecodedBatch",
    "DecodedNumbers",
    "FieldSpec",
    "GAME_CODES",
    "GENERIC_FIELDS",
    "GameFamily",
    "LOCAL_JURISDICTION",
    "NumberSet",
    "WEB_SALE_AGENCY",
    "WagerRecord",
    "build_line",
    "check_malformed_ratio",
    "decode_line",
    "decode_lines",
    "decode_number_set",
    "decode_plus_digit",
    "decode_text",
    "encode_number_set",
    "family_for_code",
    "layout_for",
    "number_set_from_values",
]

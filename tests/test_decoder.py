import unittest
from datetime import datetime

from escrutinio.errors import (
    MalformedInputError,
    MalformedRecord,
    ShortLine,
    UnsupportedCoverage,
)
from escrutinio.records import (
    GENERIC_FIELDS,
    GameFamily,
    build_line,
    check_malformed_ratio,
    decode_line,
    decode_text,
    encode_number_set,
    layout_for,
)
from escrutinio.records.decoder import LotoBody, PoceadaBody, Quini6Body

POCEADA_NUMBERS = (3, 7, 12, 18, 21, 25, 33, 38)


def _splice(line: str, start: int, text: str) -> str:
    return line[:start] + text + line[start + len(text):]


class DecodeLineTestCase(unittest.TestCase):
    def test_poceada_line(self):
        line = build_line(
            "82",
            draw_number=1234,
            numbers=POCEADA_NUMBERS,
            agency="00042",
            ticket="77",
            amount=110_000,
            sold_at=datetime(2024, 5, 1, 10, 30, 0),
            letters="cafe",
        )
        decoded = decode_line(line, line_number=3)
        record = decoded.record

        self.assertEqual(decoded.warnings, ())
        self.assertEqual(record.game_code, "82")
        self.assertIs(record.family, GameFamily.POCEADA)
        self.assertEqual(record.draw_number, 1234)
        self.assertEqual(record.jurisdiction_code, "51")
        self.assertEqual(record.selling_point_code, "00042")
        self.assertEqual(record.agency_key, "5100042")
        self.assertEqual(record.ticket_number, "000000000077")
        self.assertEqual(record.sale_timestamp, datetime(2024, 5, 1, 10, 30, 0))
        self.assertIsNone(record.cancel_timestamp)
        self.assertFalse(record.cancelled)
        self.assertEqual(record.bet_amount, 110_000)
        self.assertEqual(record.numbers_played.values, POCEADA_NUMBERS)
        self.assertEqual(record.covered_count, 8)
        self.assertEqual(record.bet_count, 1)
        self.assertEqual(record.letters_played, "CAFE")
        self.assertEqual(record.body, PoceadaBody(letters="CAFE"))
        self.assertEqual(record.line_number, 3)
        self.assertTrue(record.is_local)
        self.assertTrue(record.counts_as_ticket)

    def test_covered_bet_counts_elementary_bets(self):
        line = build_line("82", draw_number=1, numbers=range(10), amount=45 * 110_000)
        record = decode_line(line).record
        self.assertEqual(record.covered_count, 10)
        self.assertEqual(record.bet_count, 45)

    def test_web_sale_agency(self):
        line = build_line("69", draw_number=1, numbers=range(6), agency="88880")
        self.assertTrue(decode_line(line).record.is_web_sale)

    def test_quini6_body(self):
        line = build_line("69", draw_number=3100, numbers=(1, 2, 3, 4, 5, 45), instancias="3")
        record = decode_line(line).record
        self.assertEqual(record.body, Quini6Body(instancias="3", simple_bets=1))
        self.assertEqual(record.numbers_played.values, (1, 2, 3, 4, 5, 45))
        self.assertIsNone(record.letters_played)

    def test_loto_plus_digit_is_read_for_multiplier_records(self):
        line = build_line("11", draw_number=10, numbers=range(6), plus_digit=7)
        record = decode_line(line).record
        self.assertEqual(record.body, LotoBody(modality="multiplicador", plus_digit=7))

    def test_loto_plus_digit_is_ignored_for_other_codes(self):
        line = build_line("07", draw_number=10, numbers=range(6), plus_digit=7)
        self.assertEqual(decode_line(line).record.body, LotoBody(modality="tradicional"))

    def test_cancelled_record(self):
        line = build_line(
            "82",
            draw_number=1,
            numbers=POCEADA_NUMBERS,
            cancelled_at=datetime(2024, 5, 1, 11, 0, 0),
        )
        record = decode_line(line).record
        self.assertTrue(record.cancelled)
        self.assertEqual(record.cancel_timestamp, datetime(2024, 5, 1, 11, 0, 0))

    def test_zero_cancel_date_means_not_cancelled(self):
        line = build_line("82", draw_number=1, numbers=POCEADA_NUMBERS)
        line = _splice(line, GENERIC_FIELDS["FECHA_CANCELACION"].start, "00000000")
        self.assertFalse(decode_line(line).record.cancelled)

    def test_unparsable_cancel_date_is_malformed(self):
        line = build_line("82", draw_number=1, numbers=POCEADA_NUMBERS)
        line = _splice(line, GENERIC_FIELDS["FECHA_CANCELACION"].start, "20241399")
        with self.assertRaises(MalformedRecord):
            decode_line(line)

    def test_short_line(self):
        line = build_line("82", draw_number=1, numbers=POCEADA_NUMBERS)[:150]
        with self.assertRaises(ShortLine):
            decode_line(line, line_number=9)

    def test_coverage_outside_range(self):
        line = build_line("82", draw_number=1, numbers=range(7))
        with self.assertRaises(UnsupportedCoverage) as ctx:
            decode_line(line)
        self.assertEqual(ctx.exception.played, 7)
        self.assertEqual(ctx.exception.supported, (8, 15))

    def test_declared_count_must_match_sequence(self):
        line = build_line("82", draw_number=1, numbers=POCEADA_NUMBERS, declared_count=9)
        with self.assertRaises(MalformedRecord):
            decode_line(line)

    def test_blank_count_defaults_to_decoded_size(self):
        layout = layout_for(GameFamily.POCEADA)
        line = build_line("82", draw_number=1, numbers=POCEADA_NUMBERS)
        line = _splice(line, layout.field("CANTIDAD_NUMEROS").start, "  ")
        decoded = decode_line(line)
        self.assertEqual(decoded.record.covered_count, 8)
        self.assertEqual([warning.code for warning in decoded.warnings], ["blank_count"])

    def test_blank_amount_defaults_to_zero(self):
        line = build_line("82", draw_number=1, numbers=POCEADA_NUMBERS, amount=500)
        line = _splice(line, GENERIC_FIELDS["VALOR_APUESTA"].start, " " * 10)
        decoded = decode_line(line)
        self.assertEqual(decoded.record.bet_amount, 0)
        self.assertEqual([warning.code for warning in decoded.warnings], ["blank_amount"])

    def test_unknown_letter_becomes_a_warning(self):
        sequence = encode_number_set(range(8))[:24] + "Z"
        line = build_line("82", draw_number=1, numbers=range(8), sequence=sequence)
        decoded = decode_line(line)
        self.assertEqual(decoded.record.numbers_played.values, tuple(range(8)))
        self.assertEqual(decoded.warnings[0].code, "unknown_letter")
        self.assertEqual(decoded.warnings[0].detail, "Z")

    def test_unknown_letter_in_strict_mode_is_malformed(self):
        sequence = encode_number_set(range(8))[:24] + "Z"
        line = build_line("82", draw_number=1, numbers=range(8), sequence=sequence)
        with self.assertRaises(MalformedRecord):
            decode_line(line, strict_letters=True)

    def test_unknown_game_code(self):
        line = _splice(build_line("82", draw_number=1, numbers=POCEADA_NUMBERS), 2, "99")
        with self.assertRaises(KeyError):
            decode_line(line)


class DecodeTextTestCase(unittest.TestCase):
    def setUp(self):
        self.good = [
            build_line("82", draw_number=5, numbers=POCEADA_NUMBERS, ticket=str(n), amount=110_000)
            for n in range(1, 5)
        ]

    def test_counts_every_kind_of_skipped_line(self):
        lines = [
            *self.good,
            "",
            self.good[0][:100],
            build_line("82", draw_number=5, numbers=range(7)),
            build_line("69", draw_number=5, numbers=range(6)),
        ]
        batch = decode_text("\n".join(lines) + "\n", family=GameFamily.POCEADA)
        self.assertEqual(len(batch.records), 4)
        self.assertEqual(batch.total_lines, 8)
        self.assertEqual(batch.blank_lines, 1)
        self.assertEqual(batch.short_lines, 1)
        self.assertEqual(batch.unsupported_coverage, 1)
        self.assertEqual(batch.foreign, 1)
        self.assertEqual(batch.skipped, 2)
        self.assertAlmostEqual(batch.malformed_ratio, 3 / 7)
        self.assertEqual([record.line_number for record in batch.records], [1, 2, 3, 4])

    def test_unknown_code_without_family_is_malformed(self):
        unknown = _splice(self.good[0], 2, "99")
        batch = decode_text("\n".join([self.good[0], unknown]))
        self.assertEqual(batch.malformed, 1)
        self.assertEqual(batch.foreign, 0)

    def test_unknown_code_with_family_is_malformed(self):
        unknown = _splice(self.good[0], 2, "99")
        batch = decode_text("\n".join([self.good[0], unknown]), family=GameFamily.POCEADA)
        self.assertEqual(batch.malformed, 1)
        self.assertEqual(batch.foreign, 0)

    def test_other_game_lines_count_against_the_ratio(self):
        quini6 = [build_line("69", draw_number=5, numbers=range(6), ticket=str(n)) for n in range(1, 4)]
        batch = decode_text("\n".join([self.good[0], *quini6]), family=GameFamily.POCEADA)
        self.assertEqual(len(batch.records), 1)
        self.assertEqual(batch.foreign, 3)
        self.assertAlmostEqual(batch.malformed_ratio, 3 / 4)
        with self.assertLogs("escrutinio.records.decoder", level="WARNING"):
            self.assertTrue(check_malformed_ratio(batch, threshold=0.01))

    def test_only_newlines_split_records(self):
        line = _splice(self.good[0], 170, "\x85\x0c\x1e")
        content = (line + "\r\n" + self.good[1] + "\r\n").encode("latin-1")
        batch = decode_text(content, family=GameFamily.POCEADA)
        self.assertEqual(batch.total_lines, 2)
        self.assertEqual(len(batch.records), 2)
        self.assertEqual(batch.skipped, 0)
        self.assertEqual(batch.records[0].ticket_number, self.good[0][86:98].strip())

    def test_bytes_are_read_as_latin1(self):
        content = ("\r\n".join(self.good) + "\r\n").encode("latin-1")
        batch = decode_text(content)
        self.assertEqual(len(batch.records), 4)
        self.assertEqual(batch.summary()["records"], 4)

    def test_merge_sums_counters_and_keeps_line_order(self):
        first = decode_text("\n".join(self.good[:2]))
        second = decode_text("\n" + self.good[2])
        self.assertEqual([record.line_number for record in second.records], [2])
        merged = second.merge(first)
        self.assertEqual(len(merged.records), 3)
        self.assertEqual([record.line_number for record in merged.records], [1, 2, 2])
        self.assertEqual(merged.total_lines, 4)
        self.assertEqual(merged.blank_lines, 1)


class MalformedRatioTestCase(unittest.TestCase):
    def setUp(self):
        good = build_line("82", draw_number=5, numbers=POCEADA_NUMBERS)
        self.batch = decode_text("\n".join([good, good[:120]]))

    def test_below_threshold(self):
        self.assertFalse(check_malformed_ratio(self.batch, threshold=0.6))

    def test_above_threshold_warns(self):
        with self.assertLogs("escrutinio.records.decoder", level="WARNING"):
            self.assertTrue(check_malformed_ratio(self.batch, threshold=0.01))

    def test_above_threshold_raises_when_failing(self):
        with self.assertRaises(MalformedInputError) as ctx:
            check_malformed_ratio(self.batch, threshold=0.01, fail=True)
        self.assertAlmostEqual(ctx.exception.ratio, 0.5)


if __name__ == "__main__":
    unittest.main()

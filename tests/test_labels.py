import unittest

from escrutinio.scrutiny.labels import VACANT_LABEL, winners_text


class WinnersTextTestCase(unittest.TestCase):
    def test_vacant(self):
        self.assertEqual(winners_text(0), VACANT_LABEL)

    def test_spelled_counts(self):
        self.assertEqual(winners_text(1), "UN (1) GANADOR")
        self.assertEqual(winners_text(2), "DOS (2) GANADORES")
        self.assertEqual(winners_text(10), "DIEZ (10) GANADORES")

    def test_large_counts_use_digits(self):
        self.assertEqual(winners_text(11), "11 GANADORES")
        self.assertEqual(winners_text(1_250), "1250 GANADORES")

    def test_negative_count(self):
        with self.assertRaises(ValueError):
            winners_text(-1)


if __name__ == "__main__":
    unittest.main()

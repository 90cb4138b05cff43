import unittest
from unittest.mock import patch

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from escrutinio.config import ScrutinySettings
from escrutinio.errors import MalformedInputError
from escrutinio.models import AgencyPrize, Base, CarryOver, ScrutinyRun, TierResult
from escrutinio.records import build_line
from escrutinio.scrutiny import Extracto, OfficialFigures, ScrutinyEngine
from escrutinio.workflows import (
    load_carry_over,
    persist_result,
    record_carry_over,
    run_scrutiny,
)

DRAWN = (3, 7, 12, 18, 21, 25, 33, 38, 41, 47, 52, 56, 60, 64, 71, 77, 83, 88, 92, 99)
EXTRACTO = Extracto.single(DRAWN, letters="CAFE")


def _content(draw_number: int, *, winner: bool = False) -> str:
    lines = [
        build_line(
            "82",
            draw_number=draw_number,
            numbers=range(90, 98),
            agency="00004",
            ticket="1",
            amount=1_000_000,
        )
    ]
    if winner:
        lines.append(
            build_line("82", draw_number=draw_number, numbers=DRAWN[:8], agency="00009", ticket="2", amount=0)
        )
    return "\n".join(lines) + "\n"


class RunScrutinyWorkflowTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)
        self.settings = ScrutinySettings()

    def tearDown(self):
        self.engine.dispose()

    def test_stores_run_tiers_agencies_and_carry_over(self):
        with self.Session.begin() as session:
            result, run = run_scrutiny(
                session,
                _content(100),
                EXTRACTO,
                family="poceada",
                official=OfficialFigures(totals={"registros": 1}),
                settings=self.settings,
            )
            self.assertEqual(run.draw_number, 100)
            self.assertEqual(run.game, "poceada")
            self.assertEqual(run.registros, 1)
            self.assertEqual(run.recaudacion, 1_000_000)
            self.assertEqual(run.mismatch_count, 0)
            self.assertEqual(run.extracto["letters"], "CAFE")
            self.assertEqual(run.decode_summary["records"], 1)
            self.assertIn("registros", run.reconciliation)

        with self.Session() as session:
            tiers = session.scalars(select(TierResult).order_by(TierResult.id)).all()
            self.assertEqual(
                [tier.tier for tier in tiers],
                ["primer_premio", "segundo_premio", "tercer_premio", "letras", "agenciero"],
            )
            self.assertEqual(tiers[0].pool_amount, 6_000_000_000)
            self.assertEqual(tiers[0].vacant_amount, 6_000_000_000)
            agencies = session.scalars(select(AgencyPrize)).all()
            self.assertEqual([(a.jurisdiction_code, a.selling_point_code) for a in agencies], [("51", "00004")])
            self.assertEqual(
                CarryOver.for_draw(session, "poceada", 100),
                {
                    "poceada": {
                        "primer_premio": 279_000,
                        "segundo_premio": 105_750,
                        "tercer_premio": 45_000,
                        "agenciero": 2_250,
                    }
                },
            )
        self.assertEqual(result.total_prizes, 0)

    def test_vacant_pools_roll_into_the_next_draw(self):
        with self.Session.begin() as session:
            run_scrutiny(session, _content(100), EXTRACTO, family="poceada", settings=self.settings)

        with self.Session.begin() as session:
            self.assertEqual(load_carry_over(session, "poceada", 101)["poceada"]["primer_premio"], 279_000)
            result, _ = run_scrutiny(
                session, _content(101, winner=True), EXTRACTO, family="poceada", settings=self.settings
            )
            top = result.modality("poceada").pool.tier("primer_premio")
            self.assertEqual(top.carry_over_in, 279_000)
            self.assertEqual(top.winner_count, 1)
            self.assertEqual(top.pool_amount, 6_000_000_000)
            self.assertEqual(result.modality("poceada").pool.tier("segundo_premio").carry_over_in, 105_750)

        with self.Session() as session:
            carried = CarryOver.for_draw(session, "poceada", 101)
            self.assertNotIn("primer_premio", carried["poceada"])
            self.assertEqual(carried["poceada"]["segundo_premio"], 211_500)

    def test_rerun_replaces_the_stored_draw(self):
        with self.Session.begin() as session:
            run_scrutiny(session, _content(100), EXTRACTO, family="poceada", settings=self.settings)
        with self.Session.begin() as session:
            _, run = run_scrutiny(
                session, _content(100, winner=True), EXTRACTO, family="poceada", settings=self.settings
            )
            self.assertEqual(run.registros, 2)

        with self.Session() as session:
            self.assertEqual(session.scalar(select(func.count()).select_from(ScrutinyRun)), 1)
            self.assertEqual(session.scalar(select(func.count()).select_from(TierResult)), 5)
            self.assertEqual(session.scalar(select(func.count()).select_from(AgencyPrize)), 2)
            self.assertNotIn("primer_premio", CarryOver.for_draw(session, "poceada", 100)["poceada"])

    def test_first_draw_has_no_carry_over(self):
        with self.Session() as session:
            self.assertEqual(load_carry_over(session, "poceada", 1), {})
            self.assertEqual(load_carry_over(session, "poceada", 50), {})

    def test_draw_number_is_required_without_records(self):
        with self.Session.begin() as session:
            with self.assertRaises(ValueError):
                run_scrutiny(session, "", EXTRACTO, family="poceada", settings=self.settings)

    def test_malformed_file_can_abort(self):
        truncated = _content(100).split("\n")[0][:150]
        content = _content(100) + truncated + "\n"
        settings = ScrutinySettings(fail_on_malformed=True)
        with self.Session.begin() as session:
            with self.assertRaises(MalformedInputError):
                run_scrutiny(session, content, EXTRACTO, family="poceada", settings=settings)
            self.assertIsNone(ScrutinyRun.get_for_draw(session, "poceada", 100))

    def test_file_of_another_game_can_abort(self):
        content = "\n".join(
            build_line("69", draw_number=100, numbers=range(6), ticket=str(n)) for n in range(1, 6)
        )
        settings = ScrutinySettings(fail_on_malformed=True)
        with self.Session.begin() as session:
            with self.assertRaises(MalformedInputError):
                run_scrutiny(session, content, EXTRACTO, family="poceada", settings=settings)
            self.assertIsNone(ScrutinyRun.get_for_draw(session, "poceada", 100))

    def test_file_of_another_game_is_reported(self):
        content = "\n".join(
            build_line("69", draw_number=100, numbers=range(6), ticket=str(n)) for n in range(1, 6)
        )
        with self.Session.begin() as session:
            with self.assertLogs("escrutinio.records.decoder", level="WARNING"):
                result, run = run_scrutiny(
                    session, content, EXTRACTO, family="poceada", draw_number=100, settings=self.settings
                )
            self.assertEqual(run.registros, 0)
            self.assertEqual(run.decode_summary["foreign"], 5)
        self.assertEqual(result.total_prizes, 0)

    def test_storage_errors_are_reported(self):
        with self.Session.begin() as session:
            with patch("escrutinio.workflows.persist_result", side_effect=SQLAlchemyError("disk full")):
                with self.assertLogs("escrutinio.workflows", level="CRITICAL"):
                    with self.assertRaises(RuntimeError):
                        run_scrutiny(session, _content(100), EXTRACTO, family="poceada", settings=self.settings)


class PersistResultTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)

    def tearDown(self):
        self.engine.dispose()

    def test_draw_number_is_required(self):
        result = ScrutinyEngine().run([], EXTRACTO, family="poceada")
        self.assertIsNone(result.draw_number)
        with self.Session.begin() as session:
            with self.assertRaises(ValueError):
                persist_result(session, result)
            with self.assertRaises(ValueError):
                record_carry_over(session, result)


if __name__ == "__main__":
    unittest.main()

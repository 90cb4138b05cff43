import unittest

from sqlalchemy import func, select

from escrutinio.db.engine import get_sessionmaker, make_engine, reset_schema
from escrutinio.models import Base, ScrutinyRun


class TestMakeEngine(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine("sqlite+pysqlite:///:memory:")

    def tearDown(self):
        self.engine.dispose()

    def test_sqlite_enforces_foreign_keys(self):
        with self.engine.connect() as conn:
            self.assertEqual(conn.exec_driver_sql("PRAGMA foreign_keys").scalar_one(), 1)

    def test_reset_schema_empties_tables(self):
        reset_schema(self.engine, Base.metadata)
        Session = get_sessionmaker(self.engine)
        with Session.begin() as session:
            session.add(ScrutinyRun(game="poceada", draw_number=1))

        reset_schema(self.engine, Base.metadata)
        with Session() as session:
            self.assertEqual(session.scalar(select(func.count()).select_from(ScrutinyRun)), 0)

    def test_objects_stay_loaded_after_commit(self):
        Base.metadata.create_all(self.engine)
        Session = get_sessionmaker(self.engine)
        with Session.begin() as session:
            run = ScrutinyRun(game="loto5", draw_number=2)
            session.add(run)
        self.assertEqual(run.game, "loto5")


if __name__ == "__main__":
    unittest.main()

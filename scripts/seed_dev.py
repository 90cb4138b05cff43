import argparse
import logging
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from escrutinio.config import ScrutinySettings
from escrutinio.db.engine import get_sessionmaker, make_engine, reset_schema
from escrutinio.db.utils import minor_to_decimal_str
from escrutinio.models import Base
from escrutinio.records import build_line
from escrutinio.scrutiny import Extracto, OfficialFigures
from escrutinio.workflows import run_scrutiny

SAMPLE_DIR = Path(__file__).resolve().parents[1] / "data"
POCEADA_STAKE = 110_000
DRAWN = (3, 7, 12, 18, 21, 25, 33, 38, 41, 47, 52, 56, 60, 64, 71, 77, 83, 88, 92, 99)
DRAWN_LETTERS = "CAFE"


def build_sample_file(draw_number: int, *, tickets: int = 200, seed: int = 2024) -> str:
    """Return the content of a Poceada NTF file with random bets.

    A few lines are made to win on purpose, one ticket is cancelled and one
    line is truncated so the skip counters show up.
    """
    rng = random.Random(seed)
    sold_at = datetime(2024, 5, 1, 10, 0, 0)
    lines = []
    for ticket in range(1, tickets + 1):
        played = 8 if ticket % 10 else 10
        if ticket == 1:
            numbers = DRAWN[:8]
        elif ticket == 2:
            numbers = DRAWN[:7] + (1,)
        else:
            numbers = tuple(rng.sample(range(100), played))
        agency = f"{rng.randint(1, 40):05d}"
        jurisdiction = "51" if ticket % 4 else rng.choice(("52", "53", "55"))
        amount = POCEADA_STAKE * (1 if played == 8 else 45)
        lines.append(
            build_line(
                "82",
                draw_number=draw_number,
                numbers=numbers,
                jurisdiction=jurisdiction,
                agency=agency,
                ticket=str(ticket),
                amount=amount,
                sold_at=sold_at + timedelta(minutes=ticket),
                cancelled_at=sold_at + timedelta(hours=1) if ticket == 3 else None,
                letters=DRAWN_LETTERS if ticket % 50 == 0 else "ABCD",
            )
        )
    lines.append(lines[-1][:150])
    return "\n".join(lines) + "\n"


def main(argv: Optional[list[str]] = None) -> None:
    """Seed the development database with one settled Poceada draw."""
    parser = argparse.ArgumentParser(description="Seed the dev database with a sample draw.")
    parser.add_argument("--draw", type=int, default=1234, help="Draw number to generate")
    parser.add_argument("--tickets", type=int, default=200, help="Tickets in the sample file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)-5.5s [%(name)s] %(message)s")
    engine = make_engine()

    reset_schema(engine, Base.metadata)
    Session = get_sessionmaker(engine)

    SAMPLE_DIR.mkdir(exist_ok=True)
    sample_path = SAMPLE_DIR / f"poceada_{args.draw}.ntf"
    content = build_sample_file(args.draw, tickets=args.tickets)
    sample_path.write_text(content, encoding="latin-1")
    print(f"Wrote {sample_path}")

    extracto = Extracto.single(DRAWN, letters=DRAWN_LETTERS)
    official = OfficialFigures(totals={"registros": args.tickets - 1, "anulados": 1})
    with Session.begin() as session:
        result, run = run_scrutiny(
            session,
            sample_path.read_bytes(),
            extracto,
            family="poceada",
            official=official,
            settings=ScrutinySettings(),
        )
        for tier in result.modality("poceada").pool.tiers:
            print(f"{tier.name:>15}: {tier.winners_text:<25} pool {minor_to_decimal_str(tier.pool_amount):>15}")
        print(f"Stored run {run.id} with {len(run.agency_prizes)} agency row(s)")


if __name__ == "__main__":
    main()

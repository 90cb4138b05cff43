import logging
from typing import Iterable, Optional, Union

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import ScrutinySettings
from .models import AgencyPrize, CarryOver, ScrutinyRun, TierResult
from .records.decoder import check_malformed_ratio, decode_text
from .records.layouts import GameFamily
from .scrutiny.engine import ScrutinyEngine, ScrutinyResult
from .scrutiny.extracto import Extracto
from .scrutiny.reconcile import OfficialFigures
from .scrutiny.rules import RulesRegistry

logger = logging.getLogger(__name__)


def load_carry_over(
    session: Session, family: Union[GameFamily, str], draw_number: int
) -> dict[str, dict[str, int]]:
    """Return the vacant amounts left by the draw preceding ``draw_number``.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    family : Union[GameFamily, str]
        Game whose carry-over is looked up.
    draw_number : int
        Draw about to be settled; the amounts of ``draw_number - 1`` are read.

    Returns
    -------
    dict[str, dict[str, int]]
        Amounts keyed by modality and tier name. Empty when nothing was carried.
    """
    if draw_number <= 1:
        return {}
    return CarryOver.for_draw(session, GameFamily(family).value, draw_number - 1)


def persist_result(
    session: Session,
    result: ScrutinyResult,
    *,
    extracto: Optional[Extracto] = None,
) -> ScrutinyRun:
    """Store ``result``, replacing a previous run of the same game and draw.

    The run row is upserted; its tier and agency rows are rebuilt from
    scratch so a re-run never leaves stale figures behind.
    """
    if result.draw_number is None:
        raise ValueError("Cannot persist a scrutiny result without a draw number")

    game = result.family.value
    run = ScrutinyRun.get_for_draw(session, game, result.draw_number)
    if run is None:
        run = ScrutinyRun(game=game, draw_number=result.draw_number)
        session.add(run)
    else:
        logger.info(f"Replacing stored scrutiny of {game} draw {result.draw_number}")
        run.tier_results.clear()
        run.agency_prizes.clear()
        # orphans must be deleted before rows with the same keys are inserted
        session.flush()

    totals = result.totals
    run.status = "done"
    run.registros = totals.registros
    run.anulados = totals.anulados
    run.apuestas = totals.apuestas
    run.recaudacion = totals.recaudacion
    run.total_premios = result.total_prizes
    run.extracto = extracto.to_dict() if extracto is not None else None
    run.decode_summary = dict(result.decode_summary)
    run.reconciliation = result.reconciliation.as_dict()
    run.mismatch_count = len(result.reconciliation.mismatches)

    for key, modality in result.modalities.items():
        for tier in modality.pool.tiers:
            run.tier_results.append(
                TierResult(
                    modality=key,
                    tier=tier.name,
                    hit_level=str(tier.hit_level),
                    kind=tier.kind.value,
                    winner_count=tier.winner_count,
                    raw_winner_count=tier.raw_winner_count,
                    pool_amount=tier.pool_amount,
                    unit_prize=tier.unit_prize,
                    vacant_amount=tier.vacant_amount,
                    carry_over_in=tier.carry_over_in,
                    guarantee_shortfall=tier.guarantee_shortfall,
                    paid_amount=tier.paid_amount,
                )
            )

    for aggregate in result.agencies:
        run.agency_prizes.append(
            AgencyPrize(
                jurisdiction_code=aggregate.jurisdiction_code,
                selling_point_code=aggregate.selling_point_code,
                record_count=aggregate.record_count,
                ticket_count=aggregate.ticket_count,
                bet_count=aggregate.bet_count,
                cancelled_count=aggregate.cancelled_count,
                stake_total=aggregate.stake_total,
                winner_count=aggregate.winner_count,
                prize_total=aggregate.prize_total,
                commission_total=aggregate.commission_total,
            )
        )

    session.flush()
    return run


def record_carry_over(session: Session, result: ScrutinyResult) -> list[CarryOver]:
    """Store the vacant amounts of ``result`` for the next draw.

    Rows previously recorded for the same game and draw are replaced.
    """
    if result.draw_number is None:
        raise ValueError("Cannot record carry-over without a draw number")

    game = result.family.value
    session.execute(
        delete(CarryOver).where(
            CarryOver.game == game, CarryOver.draw_number == result.draw_number
        )
    )
    rows = [
        CarryOver(
            game=game,
            modality=modality,
            draw_number=result.draw_number,
            tier=tier,
            amount=amount,
        )
        for modality, amounts in result.carry_over_out().items()
        for tier, amount in amounts.items()
    ]
    session.add_all(rows)
    session.flush()
    logger.debug(f"Recorded {len(rows)} carry-over amount(s) for {game} draw {result.draw_number}")
    return rows


def run_scrutiny(
    session: Session,
    content: Union[str, bytes],
    extracto: Extracto,
    *,
    family: Union[GameFamily, str],
    draw_number: Optional[int] = None,
    official: Optional[OfficialFigures] = None,
    settings: Optional[ScrutinySettings] = None,
    registry: Optional[RulesRegistry] = None,
    modalities: Optional[Iterable[str]] = None,
) -> tuple[ScrutinyResult, ScrutinyRun]:
    """Decode an NTF file, settle the draw and store the outcome.

    This workflow performs the following steps:

    1. Decode ``content`` keeping only lines of ``family``.
    2. Check the malformed-line ratio against the configured threshold.
    3. Look up the carry-over left by the previous draw.
    4. Run the :class:`~escrutinio.scrutiny.engine.ScrutinyEngine`.
    5. Persist the run and the carry-over it leaves for the next draw.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    content : Union[str, bytes]
        Raw NTF content; ``bytes`` are read as latin-1.
    extracto : Extracto
        Official draw result.
    family : Union[GameFamily, str]
        Game being settled.
    draw_number : Optional[int]
        Draw number; read from the first record when omitted.
    official : Optional[OfficialFigures]
        Declared figures used for declared pools and reconciliation.
    settings : Optional[ScrutinySettings]
        Settings; read from the environment when omitted.
    registry : Optional[RulesRegistry]
        Custom rules registry.
    modalities : Optional[Iterable[str]]
        Restrict the run to these modality keys.

    Returns
    -------
    tuple[ScrutinyResult, ScrutinyRun]
        The computed result and its stored row.

    Raises
    ------
    MalformedInputError
        If the file exceeds the malformed threshold and failing is enabled.
    InvalidExtracto
        If ``extracto`` does not fit the game.
    RuntimeError
        If the result cannot be stored.
    """
    settings = settings or ScrutinySettings.from_env()
    family = GameFamily(family)

    batch = decode_text(content, family=family, strict_letters=settings.strict_letters)
    check_malformed_ratio(
        batch,
        threshold=settings.malformed_threshold,
        fail=settings.fail_on_malformed,
    )
    if draw_number is None:
        if not batch.records:
            raise ValueError("No records decoded; the draw number must be given explicitly")
        draw_number = batch.records[0].draw_number

    carry_over = load_carry_over(session, family, draw_number)
    engine = ScrutinyEngine(registry=registry, settings=settings)
    result = engine.run(
        batch,
        extracto,
        family=family,
        draw_number=draw_number,
        official=official,
        carry_over=carry_over,
        modalities=list(modalities) if modalities is not None else None,
    )

    try:
        run = persist_result(session, result, extracto=extracto)
        record_carry_over(session, result)
    except SQLAlchemyError as e:
        logger.critical(f"Error occurred while storing scrutiny of {family.value} draw {draw_number}: {e}")
        raise RuntimeError(f"Failed to store scrutiny result: {e}") from e
    return result, run


__all__ = ["load_carry_over", "persist_result", "record_carry_over", "run_scrutiny"]

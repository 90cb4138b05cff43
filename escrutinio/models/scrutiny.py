"""Database models storing scrutiny results and carry-over between draws."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from escrutinio.db.utils import dt_iso

from .base import Base
from .id_type import ID_TYPE, MONEY_TYPE


class ScrutinyRun(Base):
    """One settled draw of a game."""

    __tablename__ = "scrutiny_runs"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    game: Mapped[str] = mapped_column(String(20), nullable=False)
    """Game family key (``"poceada"``, ``"quini6"`` ...)."""

    draw_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Draw that was settled."""

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="done")
    """Final state of the run (``"done"`` or ``"failed"``)."""

    registros: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Valid tickets."""

    anulados: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Cancelled tickets."""

    apuestas: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Elementary bets."""

    recaudacion: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    """Revenue in minor units."""

    total_premios: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    """Sum of every paid amount, in minor units."""

    extracto: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """Draw result used for the run."""

    decode_summary: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """Decoder counters (skipped, malformed, foreign lines ...)."""

    reconciliation: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """Calculated vs official figures, keyed by item name."""

    mismatch_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Reconciliation items outside tolerance."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the run was first stored."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    """Timestamp bumped whenever the run is re-settled."""

    tier_results: Mapped[list["TierResult"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="TierResult.id",
    )
    """Tiers of every modality of the run."""

    agency_prizes: Mapped[list["AgencyPrize"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="AgencyPrize.id",
    )
    """Per-agency aggregates of the run."""

    __table_args__ = (
        UniqueConstraint("game", "draw_number", name="uq_scrutiny_runs_game_draw"),
    )

    def __init__(
        self,
        *,
        game: str,
        draw_number: int,
        status: str = "done",
        registros: int = 0,
        anulados: int = 0,
        apuestas: int = 0,
        recaudacion: int = 0,
        total_premios: int = 0,
        extracto: Optional[dict] = None,
        decode_summary: Optional[dict] = None,
        reconciliation: Optional[dict] = None,
        mismatch_count: int = 0,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.game = game
        self.draw_number = draw_number
        self.status = status
        self.registros = registros
        self.anulados = anulados
        self.apuestas = apuestas
        self.recaudacion = recaudacion
        self.total_premios = total_premios
        self.extracto = extracto
        self.decode_summary = decode_summary
        self.reconciliation = reconciliation
        self.mismatch_count = mismatch_count
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<ScrutinyRun(id={id}, game={game}, draw_number={draw})>".format(
            id=self.id,
            game=self.game,
            draw=self.draw_number,
        )

    @classmethod
    def get_for_draw(cls, session: Session, game: str, draw_number: int) -> Optional["ScrutinyRun"]:
        """Return the run stored for ``game`` and ``draw_number`` if any."""
        return session.scalar(
            select(cls).where(cls.game == game, cls.draw_number == draw_number)
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "game": self.game,
            "draw_number": self.draw_number,
            "status": self.status,
            "registros": self.registros,
            "anulados": self.anulados,
            "apuestas": self.apuestas,
            "recaudacion": self.recaudacion,
            "total_premios": self.total_premios,
            "mismatch_count": self.mismatch_count,
            "created_at": dt_iso(self.created_at),
            "updated_at": dt_iso(self.updated_at),
            "tiers": [tier.to_json() for tier in self.tier_results],
        }


class TierResult(Base):
    """Settled figures of one tier of one modality."""

    __tablename__ = "tier_results"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("scrutiny_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    modality: Mapped[str] = mapped_column(String(50), nullable=False)
    tier: Mapped[str] = mapped_column(String(50), nullable=False)
    hit_level: Mapped[str] = mapped_column(String(30), nullable=False)
    """Hits paid by the tier, stored as text so symbolic levels fit."""

    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    winner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    raw_winner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pool_amount: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    unit_prize: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    vacant_amount: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    carry_over_in: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    guarantee_shortfall: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    paid_amount: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)

    run: Mapped["ScrutinyRun"] = relationship(back_populates="tier_results")

    __table_args__ = (
        UniqueConstraint("run_id", "modality", "tier", name="uq_tier_results_run_modality_tier"),
    )

    def to_json(self) -> dict[str, Any]:
        return {
            "modality": self.modality,
            "tier": self.tier,
            "hit_level": self.hit_level,
            "kind": self.kind,
            "winner_count": self.winner_count,
            "pool_amount": self.pool_amount,
            "unit_prize": self.unit_prize,
            "vacant_amount": self.vacant_amount,
            "paid_amount": self.paid_amount,
        }


class AgencyPrize(Base):
    """Sales and prizes of one selling point (or one folded jurisdiction) in a run."""

    __tablename__ = "agency_prizes"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("scrutiny_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    jurisdiction_code: Mapped[str] = mapped_column(String(2), nullable=False)
    selling_point_code: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    """``None`` when the row sums a whole jurisdiction."""

    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ticket_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bet_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cancelled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stake_total: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    winner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    prize_total: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)
    commission_total: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False, default=0)

    run: Mapped["ScrutinyRun"] = relationship(back_populates="agency_prizes")

    __table_args__ = (
        Index("ix_agency_prizes_agency", "jurisdiction_code", "selling_point_code"),
    )


class CarryOver(Base):
    """Vacant amount a draw leaves for the next draw of the same game."""

    __tablename__ = "carry_overs"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    game: Mapped[str] = mapped_column(String(20), nullable=False)
    """Game family key."""

    modality: Mapped[str] = mapped_column(String(50), nullable=False)
    """Modality key the amount belongs to."""

    draw_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Draw that left the amount vacant."""

    tier: Mapped[str] = mapped_column(String(50), nullable=False)
    """Tier name receiving the amount in the next draw."""

    amount: Mapped[int] = mapped_column(MONEY_TYPE, nullable=False)
    """Vacant amount in minor units."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the amount was recorded."""

    __table_args__ = (
        UniqueConstraint(
            "game", "modality", "draw_number", "tier", name="uq_carry_overs_game_modality_draw_tier"
        ),
    )

    def __init__(
        self,
        *,
        game: str,
        modality: str,
        draw_number: int,
        tier: str,
        amount: int,
        created_at: Optional[datetime] = None,
    ) -> None:
        if amount < 0:
            raise ValueError("Carry-over amount cannot be negative")
        self.game = game
        self.modality = modality
        self.draw_number = draw_number
        self.tier = tier
        self.amount = amount
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<CarryOver(game={game}, modality={modality}, draw={draw}, tier={tier}, amount={amount})>".format(
            game=self.game,
            modality=self.modality,
            draw=self.draw_number,
            tier=self.tier,
            amount=self.amount,
        )

    @classmethod
    def for_draw(cls, session: Session, game: str, draw_number: int) -> dict[str, dict[str, int]]:
        """Return the amounts left by ``draw_number`` keyed by modality and tier."""
        rows = session.scalars(
            select(cls).where(cls.game == game, cls.draw_number == draw_number).order_by(cls.id)
        )
        amounts: dict[str, dict[str, int]] = {}
        for row in rows:
            amounts.setdefault(row.modality, {})[row.tier] = row.amount
        return amounts


__all__ = ["AgencyPrize", "CarryOver", "ScrutinyRun", "TierResult"]

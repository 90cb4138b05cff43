"""Sales aggregation per agency and reconciliation against official figures."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from ..records.decoder import WagerRecord
from ..records.layouts import LOCAL_JURISDICTION
from .distribution import PrizePool
from .rules import TierKind
from .tally import WinningEntry

logger = logging.getLogger(__name__)

COUNT_TOLERANCE = 1
MONEY_TOLERANCE = 1

AgencyKey = tuple[str, Optional[str]]


def agency_key_for(jurisdiction_code: str, selling_point_code: str) -> AgencyKey:
    """Selling points of the local jurisdiction are kept apart; others fold by province."""
    if jurisdiction_code == LOCAL_JURISDICTION:
        return (jurisdiction_code, selling_point_code)
    return (jurisdiction_code, None)


@dataclass
class AgencyAggregate:
    """Sales and prizes of one selling point (or one whole jurisdiction)."""

    jurisdiction_code: str
    selling_point_code: Optional[str] = None
    record_count: int = 0
    ticket_count: int = 0
    bet_count: int = 0
    cancelled_count: int = 0
    stake_total: int = 0
    winner_count: int = 0
    prize_total: int = 0
    commission_total: int = 0
    _tickets: set[str] = field(default_factory=set, repr=False, compare=False)

    @property
    def key(self) -> AgencyKey:
        return (self.jurisdiction_code, self.selling_point_code)

    @property
    def label(self) -> str:
        if self.selling_point_code is None:
            return self.jurisdiction_code
        return f"{self.jurisdiction_code}{self.selling_point_code}"

    def add_record(self, record: WagerRecord) -> None:
        if record.cancelled:
            self.cancelled_count += 1
            return
        self.record_count += 1
        if record.ticket_number not in self._tickets:
            self._tickets.add(record.ticket_number)
            self.ticket_count += 1
        self.bet_count += record.bet_count
        self.stake_total += record.bet_amount

    def to_dict(self) -> dict[str, object]:
        return {
            "jurisdiction_code": self.jurisdiction_code,
            "selling_point_code": self.selling_point_code,
            "record_count": self.record_count,
            "ticket_count": self.ticket_count,
            "bet_count": self.bet_count,
            "cancelled_count": self.cancelled_count,
            "stake_total": self.stake_total,
            "winner_count": self.winner_count,
            "prize_total": self.prize_total,
            "commission_total": self.commission_total,
        }


def aggregate_sales(records: Iterable[WagerRecord]) -> dict[AgencyKey, AgencyAggregate]:
    """Fold ``records`` (cancelled ones included) into agency aggregates."""
    aggregates: dict[AgencyKey, AgencyAggregate] = {}
    for record in records:
        _aggregate_for(aggregates, record.jurisdiction_code, record.selling_point_code).add_record(record)
    return aggregates


def attribute_prizes(
    aggregates: dict[AgencyKey, AgencyAggregate],
    pool: PrizePool,
    entries: Iterable[WinningEntry],
    *,
    commissioned: Iterable[str] = (),
) -> None:
    """Add the prizes of ``pool`` to the agencies that sold the winning entries.

    Pool and fixed tiers pay ``unit_prize`` per combination; refund and bonus
    tiers pay the entry's own ``amount``. Each agency key in ``commissioned``
    (seven character jurisdiction + selling point) receives one commission
    unit.
    """
    paying = {tier.name: tier for tier in pool.tiers if tier.winner_count > 0}
    for entry in entries:
        tier = paying.get(entry.tier)
        if tier is None:
            continue
        if tier.kind in (TierKind.REFUND, TierKind.BONUS):
            amount = entry.amount
        else:
            amount = tier.unit_prize * entry.combinations
        aggregate = _aggregate_for(aggregates, entry.jurisdiction_code, entry.selling_point_code)
        aggregate.winner_count += entry.combinations
        aggregate.prize_total += amount

    for tier in pool.tiers:
        if tier.kind is not TierKind.COMMISSION or tier.winner_count == 0:
            continue
        for agency in commissioned:
            aggregate = _aggregate_for(aggregates, agency[:2], agency[2:])
            aggregate.commission_total += tier.unit_prize


def _aggregate_for(
    aggregates: dict[AgencyKey, AgencyAggregate],
    jurisdiction_code: str,
    selling_point_code: str,
) -> AgencyAggregate:
    key = agency_key_for(jurisdiction_code, selling_point_code)
    aggregate = aggregates.get(key)
    if aggregate is None:
        aggregate = AgencyAggregate(jurisdiction_code=key[0], selling_point_code=key[1])
        aggregates[key] = aggregate
    return aggregate


@dataclass(frozen=True)
class OfficialFigures:
    """Figures declared by the lottery for a draw.

    Attributes
    ----------
    totals : Mapping[str, int]
        ``registros``, ``anulados``, ``apuestas`` and ``recaudacion``.
    pools : Mapping[str, Mapping[str, int]]
        Declared pool per modality and tier name (also ``agenciero`` and
        ``fondo_reserva``).
    winners : Mapping[str, Mapping[str, int]]
        Declared winners per modality and tier name.
    vacant : Mapping[str, Mapping[str, int]]
        Declared vacant amounts per modality and tier name.
    paid : Mapping[str, Mapping[str, int]]
        Declared amounts paid per modality and tier name.
    extras : Mapping[str, int]
        ``diferencia_asegurar``, ``fondo_reserva`` and ``total_premios``.
    """

    totals: Mapping[str, int] = field(default_factory=dict)
    pools: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    winners: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    vacant: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    paid: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    extras: Mapping[str, int] = field(default_factory=dict)

    def declared_pools(self, modality: str) -> dict[str, int]:
        """Pools declared for ``modality``; empty when none were published."""
        return dict(self.pools.get(modality, {}))


@dataclass(frozen=True)
class SalesTotals:
    """Totals calculated from the decoded records."""

    registros: int = 0
    anulados: int = 0
    apuestas: int = 0
    recaudacion: int = 0

    @classmethod
    def from_records(cls, records: Iterable[WagerRecord]) -> "SalesTotals":
        registros = anulados = apuestas = recaudacion = 0
        for record in records:
            if record.cancelled:
                if record.counts_as_ticket:
                    anulados += 1
                continue
            if record.counts_as_ticket:
                registros += 1
            apuestas += record.bet_count
            recaudacion += record.bet_amount
        return cls(registros=registros, anulados=anulados, apuestas=apuestas, recaudacion=recaudacion)

    def as_dict(self) -> dict[str, int]:
        return {
            "registros": self.registros,
            "anulados": self.anulados,
            "apuestas": self.apuestas,
            "recaudacion": self.recaudacion,
        }


_COUNT_TOTALS = frozenset({"registros", "anulados", "apuestas"})


@dataclass(frozen=True)
class ReconciliationItem:
    name: str
    calculated: int
    official: int
    tolerance: int

    @property
    def difference(self) -> int:
        return self.calculated - self.official

    @property
    def mismatch(self) -> bool:
        return abs(self.difference) > self.tolerance


@dataclass(frozen=True)
class ReconciliationMismatch:
    """Advisory entry describing a figure that disagrees with the official one."""

    name: str
    calculated: int
    official: int
    difference: int


@dataclass
class ReconciliationReport:
    items: list[ReconciliationItem] = field(default_factory=list)

    def add(self, name: str, calculated: int, official: int, *, tolerance: int) -> ReconciliationItem:
        item = ReconciliationItem(name=name, calculated=calculated, official=official, tolerance=tolerance)
        self.items.append(item)
        return item

    @property
    def mismatches(self) -> list[ReconciliationMismatch]:
        return [
            ReconciliationMismatch(
                name=item.name,
                calculated=item.calculated,
                official=item.official,
                difference=item.difference,
            )
            for item in self.items
            if item.mismatch
        ]

    @property
    def ok(self) -> bool:
        return not self.mismatches

    def as_dict(self) -> dict[str, dict[str, int]]:
        return {
            item.name: {
                "calculated": item.calculated,
                "official": item.official,
                "difference": item.difference,
            }
            for item in self.items
        }


def reconcile(
    totals: SalesTotals,
    pools: Iterable[PrizePool],
    official: Optional[OfficialFigures],
) -> ReconciliationReport:
    """Compare calculated figures with ``official`` ones.

    Only figures the official side declares are compared. Mismatches are
    logged as warnings and never raised.
    """
    report = ReconciliationReport()
    if official is None:
        return report

    calculated_totals = totals.as_dict()
    for name, declared in official.totals.items():
        if name not in calculated_totals:
            logger.debug(f"Ignoring unknown official total '{name}'")
            continue
        tolerance = COUNT_TOLERANCE if name in _COUNT_TOTALS else MONEY_TOLERANCE
        report.add(name, calculated_totals[name], declared, tolerance=tolerance)

    pools = list(pools)
    for pool in pools:
        declared_pools = official.declared_pools(pool.modality)
        declared_winners = official.winners.get(pool.modality, {})
        declared_vacant = official.vacant.get(pool.modality, {})
        declared_paid = official.paid.get(pool.modality, {})
        for tier in pool.tiers:
            prefix = f"{pool.modality}.{tier.name}"
            if tier.name in declared_pools:
                report.add(f"{prefix}.pozo", tier.pool_amount, declared_pools[tier.name], tolerance=MONEY_TOLERANCE)
            if tier.name in declared_winners:
                report.add(
                    f"{prefix}.ganadores", tier.winner_count, declared_winners[tier.name], tolerance=COUNT_TOLERANCE
                )
            if tier.name in declared_vacant:
                report.add(f"{prefix}.vacante", tier.vacant_amount, declared_vacant[tier.name], tolerance=MONEY_TOLERANCE)
            if tier.name in declared_paid:
                report.add(f"{prefix}.pagado", tier.paid_amount, declared_paid[tier.name], tolerance=MONEY_TOLERANCE)

    calculated_extras = {
        "diferencia_asegurar": sum(pool.guarantee_shortfall for pool in pools),
        "fondo_reserva": sum(pool.reserve_amount for pool in pools),
        "total_premios": sum(pool.total_paid for pool in pools),
    }
    for name, declared in official.extras.items():
        if name in calculated_extras:
            report.add(name, calculated_extras[name], declared, tolerance=MONEY_TOLERANCE)

    for mismatch in report.mismatches:
        logger.warning(
            f"Reconciliation mismatch for {mismatch.name}: calculated {mismatch.calculated}, "
            f"official {mismatch.official} (difference {mismatch.difference})"
        )
    return report


__all__ = [
    "AgencyAggregate",
    "COUNT_TOLERANCE",
    "MONEY_TOLERANCE",
    "OfficialFigures",
    "ReconciliationItem",
    "ReconciliationMismatch",
    "ReconciliationReport",
    "SalesTotals",
    "agency_key_for",
    "aggregate_sales",
    "attribute_prizes",
    "reconcile",
]

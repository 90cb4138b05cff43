"""Scrutiny engine: hit counting, tiering and settlement of a whole draw."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from typing import Iterable, Mapping, Optional, Union

from ..config import ScrutinySettings
from ..errors import InvalidExtracto
from ..records.decoder import DecodedBatch, DecodeWarning, LotoBody, WagerRecord
from ..records.layouts import GameFamily
from .distribution import PrizePool, distribute_bonus, distribute_modality
from .extracto import Extracto, validate_draw
from .reconcile import (
    AgencyAggregate,
    OfficialFigures,
    ReconciliationReport,
    SalesTotals,
    aggregate_sales,
    attribute_prizes,
    reconcile,
)
from .rules import (
    BONUS_LEVEL,
    DEFAULT_RULES_REGISTRY,
    BonusRule,
    GameRules,
    ModalityRules,
    RulesRegistry,
)
from .tally import PlayedWager, TierTally, WinningEntry, tally_shard

logger = logging.getLogger(__name__)


class ScrutinyState(str, Enum):
    IDLE = "idle"
    DECODING = "decoding"
    TALLYING = "tallying"
    TIERING = "tiering"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ModalityOutcome:
    """Winner counts of one modality after tiering.

    Attributes
    ----------
    rules : ModalityRules
        Resolved rules the modality ran with.
    tally : TierTally
        Merged raw tally.
    counts : dict[str, int]
        Winners used for payout per tier name.
    cascade_level : Optional[int]
        Level that resolved a cascading modality.
    """

    rules: ModalityRules
    tally: TierTally
    counts: dict[str, int]
    cascade_level: Optional[int] = None

    @property
    def raw_counts(self) -> dict[str, int]:
        return {tier.name: self.tally.winners_at(tier.name) for tier in self.rules.tiers}

    @property
    def paying_tier(self) -> Optional[str]:
        """Tier whose winners drive the commission (the resolved one in a cascade)."""
        if self.rules.cascade:
            if self.cascade_level is None:
                return None
            return next(tier.name for tier in self.rules.tiers if tier.level == self.cascade_level)
        return self.rules.top_tier.name

    @property
    def top_entries(self) -> list[WinningEntry]:
        tier = self.paying_tier
        return self.tally.entries_for(tier) if tier is not None else []

    @property
    def entries(self) -> list[WinningEntry]:
        """Winning entries of every tier that pays."""
        return [entry for entry in self.tally.entries if self.counts.get(entry.tier, 0) > 0]

    def commission_agencies(self) -> list[str]:
        """Unique non-web agencies that sold a top-tier winner, in order of appearance."""
        seen: dict[str, None] = {}
        for entry in self.top_entries:
            if not entry.is_web_sale:
                seen.setdefault(entry.agency_key, None)
        return list(seen)


class ModalityScrutiny:
    """State machine scrutinising one modality of a draw.

    The machine moves ``IDLE -> DECODING -> TALLYING -> TIERING -> DONE``.
    Calling a step out of order raises :class:`RuntimeError`; an invalid
    extracto moves it to ``FAILED``.
    """

    def __init__(self, rules: ModalityRules, extracto: Extracto, *, shard_size: int = 50_000) -> None:
        if shard_size <= 0:
            raise ValueError("shard_size must be positive")
        self.rules = rules
        self.extracto = extracto
        self.shard_size = shard_size
        self.state = ScrutinyState.IDLE
        self._drawn: Optional[frozenset[int]] = None

    def _advance(self, expected: ScrutinyState, target: ScrutinyState) -> None:
        if self.state is not expected:
            raise RuntimeError(
                f"Cannot move '{self.rules.key}' to {target.value} from {self.state.value}"
            )
        self.state = target

    def validate(self) -> frozenset[int]:
        """Validate the modality's draw.

        Raises
        ------
        InvalidExtracto
            If the draw does not fit the modality; the machine is left ``FAILED``.
        """
        try:
            self._drawn = validate_draw(
                self.extracto,
                modality=self.rules.key,
                draw_key=self.rules.draw_key,
                draw_size=self.rules.draw_size,
                ceiling=self.rules.number_ceiling,
                letters_size=self.rules.letters_size,
            )
        except InvalidExtracto:
            self.state = ScrutinyState.FAILED
            raise
        return self._drawn

    def decode(self, records: Iterable[WagerRecord]) -> list[PlayedWager]:
        """Select the active records of the modality and count their hits."""
        drawn = self._drawn if self._drawn is not None else self.validate()
        self._advance(ScrutinyState.IDLE, ScrutinyState.DECODING)
        return [
            PlayedWager(record=record, hits=record.numbers_played.hits(drawn))
            for record in records
            if not record.cancelled and self.rules.accepts(record)
        ]

    def tally(self, wagers: list[PlayedWager]) -> TierTally:
        """Tally ``wagers`` shard by shard and merge the partial results."""
        self._advance(ScrutinyState.DECODING, ScrutinyState.TALLYING)
        partials = [
            tally_shard(
                self.rules,
                wagers[start : start + self.shard_size],
                letters=self.extracto.letters,
            )
            for start in range(0, len(wagers), self.shard_size)
        ]
        logger.debug(f"{self.rules.key}: tallied {len(wagers)} wagers in {len(partials)} shard(s)")
        return reduce(TierTally.merge, partials, TierTally(modality=self.rules.key))

    def tier(self, tally: TierTally) -> ModalityOutcome:
        """Turn raw counts into payout counts, applying the cascading rule."""
        self._advance(ScrutinyState.TALLYING, ScrutinyState.TIERING)
        counts = {tier.name: tally.winners_at(tier.name) for tier in self.rules.tiers}
        cascade_level = None
        if self.rules.cascade:
            resolved = next(
                (tier for tier in self.rules.tiers if isinstance(tier.level, int) and counts[tier.name] > 0),
                None,
            )
            counts = {name: 0 for name in counts}
            if resolved is not None:
                counts[resolved.name] = tally.winners_at(resolved.name)
                cascade_level = resolved.level
        self.state = ScrutinyState.DONE
        return ModalityOutcome(rules=self.rules, tally=tally, counts=counts, cascade_level=cascade_level)

    def run(self, records: Iterable[WagerRecord]) -> ModalityOutcome:
        return self.tier(self.tally(self.decode(records)))


@dataclass
class ModalityResult:
    """Settled result of one modality (or of a bonus)."""

    key: str
    label: str
    pool: PrizePool
    entries: list[WinningEntry] = field(default_factory=list)
    top_tier_agencies: list[str] = field(default_factory=list)
    cascade_level: Optional[int] = None
    records: int = 0
    tickets: int = 0
    bets: int = 0
    bets_by_count: dict[int, int] = field(default_factory=dict)

    @property
    def top_entries(self) -> list[WinningEntry]:
        """Entries of the highest tier that paid."""
        top = next((tier.name for tier in self.pool.tiers if tier.winner_count > 0), None)
        return [entry for entry in self.entries if entry.tier == top]


@dataclass
class ScrutinyResult:
    """Everything the engine produced for a draw."""

    family: GameFamily
    draw_number: Optional[int]
    modalities: dict[str, ModalityResult]
    totals: SalesTotals
    agencies: list[AgencyAggregate]
    reconciliation: ReconciliationReport
    decode_summary: dict[str, int] = field(default_factory=dict)
    warnings: list[DecodeWarning] = field(default_factory=list)

    def modality(self, key: str) -> ModalityResult:
        try:
            return self.modalities[key]
        except KeyError as exc:
            raise KeyError(f"Result has no modality '{key}'") from exc

    @property
    def pools(self) -> list[PrizePool]:
        return [result.pool for result in self.modalities.values()]

    @property
    def total_prizes(self) -> int:
        return sum(pool.total_paid for pool in self.pools)

    def carry_over_out(self) -> dict[str, dict[str, int]]:
        """Vacant amounts per modality and tier to roll into the next draw."""
        carried = {}
        for key, result in self.modalities.items():
            amounts = result.pool.carry_over_out()
            if amounts:
                carried[key] = amounts
        return carried


class ScrutinyEngine:
    """Run the scrutiny of a draw for every modality of a game."""

    def __init__(
        self,
        *,
        registry: Optional[RulesRegistry] = None,
        settings: Optional[ScrutinySettings] = None,
    ) -> None:
        """Create an engine.

        Parameters
        ----------
        registry : Optional[RulesRegistry], default: None
            Registry holding the game rules. Typically omitted, in which case
            :data:`~escrutinio.scrutiny.rules.DEFAULT_RULES_REGISTRY` is used.
        settings : Optional[ScrutinySettings], default: None
            Runtime settings; the shard size is read from them.
        """
        self._registry = registry or DEFAULT_RULES_REGISTRY
        self._settings = settings or ScrutinySettings()

    def run(
        self,
        source: Union[DecodedBatch, Iterable[WagerRecord]],
        extracto: Extracto,
        *,
        family: Union[GameFamily, str, None] = None,
        draw_number: Optional[int] = None,
        official: Optional[OfficialFigures] = None,
        carry_over: Optional[Mapping[str, Mapping[str, int]]] = None,
        modalities: Optional[Iterable[str]] = None,
    ) -> ScrutinyResult:
        """Scrutinise ``source`` against ``extracto``.

        Parameters
        ----------
        source : Union[DecodedBatch, Iterable[WagerRecord]]
            Decoded records of the draw, cancelled ones included.
        extracto : Extracto
            Official draw result.
        family : Union[GameFamily, str, None], default: None
            Game family. Inferred from the first record when omitted.
        draw_number : Optional[int], default: None
            Draw being settled. Inferred from the first record when omitted.
        official : Optional[OfficialFigures], default: None
            Declared figures; their pools feed declared modalities and every
            declared figure is reconciled.
        carry_over : Optional[Mapping[str, Mapping[str, int]]], default: None
            Vacant amounts of the previous draw per modality and tier.
        modalities : Optional[Iterable[str]], default: None
            Restrict the run to these modality keys.

        Returns
        -------
        ScrutinyResult
            Pools, agencies and reconciliation of the draw.

        Notes
        -----
        The run performs the following steps:

        1. Validate the draw of every selected modality. Nothing is computed
           when any of them is invalid.
        2. Run the :class:`ModalityScrutiny` machine of each modality.
        3. Distribute each modality's pools and settle the bonus multiplier.
        4. Aggregate sales and prizes per agency and reconcile.

        Raises
        ------
        InvalidExtracto
            If any selected modality cannot be scrutinised with ``extracto``.
        ValueError
            If the family cannot be determined or no modality is selected.
        KeyError
            If no rules are registered for the family or a modality key is unknown.
        """
        decode_summary: dict[str, int] = {}
        warnings: list[DecodeWarning] = []
        if isinstance(source, DecodedBatch):
            records = list(source.records)
            decode_summary = source.summary()
            warnings = list(source.warnings)
        else:
            records = list(source)

        if family is None:
            if not records:
                raise ValueError("Cannot infer the game family without records")
            family = records[0].family
        game_rules = self._registry.get(family)
        if draw_number is None and records:
            draw_number = records[0].draw_number

        selected = self._select_modalities(game_rules, modalities)
        machines = [
            ModalityScrutiny(rules.resolve(extracto), extracto, shard_size=self._settings.shard_size)
            for rules in selected
        ]
        for machine in machines:
            machine.validate()
        bonus = game_rules.bonus if modalities is None else None
        if bonus is not None and extracto.plus_digit is not None and not 0 <= extracto.plus_digit <= 9:
            raise InvalidExtracto(bonus.key, f"PLUS digit must be 0-9, got {extracto.plus_digit}")

        carry_over = carry_over or {}
        results: dict[str, ModalityResult] = {}
        outcomes: dict[str, ModalityOutcome] = {}
        for machine in machines:
            outcome = machine.run(records)
            rules = outcome.rules
            agencies = outcome.commission_agencies()
            pool = distribute_modality(
                rules,
                revenue=outcome.tally.stake,
                counts=outcome.counts,
                raw_counts=outcome.raw_counts,
                refunds=outcome.tally.refunds,
                cascade_level=outcome.cascade_level,
                commission_agencies=len(agencies),
                carry_over=carry_over.get(rules.key, {}),
                declared=official.declared_pools(rules.key) if official is not None else {},
            )
            outcomes[rules.key] = outcome
            results[rules.key] = ModalityResult(
                key=rules.key,
                label=rules.label,
                pool=pool,
                entries=outcome.entries,
                top_tier_agencies=agencies,
                cascade_level=outcome.cascade_level,
                records=outcome.tally.records,
                tickets=outcome.tally.tickets,
                bets=outcome.tally.bets,
                bets_by_count=dict(outcome.tally.bets_by_count),
            )

        if bonus is not None:
            if extracto.plus_digit is None:
                logger.info(f"No PLUS digit drawn; skipping {bonus.key}")
            else:
                results[bonus.key] = self._settle_bonus(bonus, records, extracto.plus_digit, outcomes, results)

        totals = SalesTotals.from_records(records)
        aggregates = aggregate_sales(records)
        for result in results.values():
            attribute_prizes(aggregates, result.pool, result.entries, commissioned=result.top_tier_agencies)
        report = reconcile(totals, (result.pool for result in results.values()), official)

        result = ScrutinyResult(
            family=game_rules.family,
            draw_number=draw_number,
            modalities=results,
            totals=totals,
            agencies=sorted(aggregates.values(), key=lambda aggregate: aggregate.label),
            reconciliation=report,
            decode_summary=decode_summary,
            warnings=warnings,
        )
        logger.info(
            f"Scrutiny of {game_rules.key} draw {draw_number}: {totals.registros} registros, "
            f"{totals.anulados} anulados, {len(results)} modalities, "
            f"{len(report.mismatches)} reconciliation mismatch(es)"
        )
        return result

    @staticmethod
    def _select_modalities(
        game_rules: GameRules, modalities: Optional[Iterable[str]]
    ) -> list[ModalityRules]:
        if modalities is None:
            return list(game_rules.modalities)
        selected = [game_rules.modality(key) for key in modalities]
        if not selected:
            raise ValueError("At least one modality must be selected")
        return selected

    @staticmethod
    def _settle_bonus(
        bonus: BonusRule,
        records: list[WagerRecord],
        plus_digit: int,
        outcomes: Mapping[str, ModalityOutcome],
        results: Mapping[str, ModalityResult],
    ) -> ModalityResult:
        """Double the top-level prizes of tickets whose PLUS digit matches.

        A cascading source modality only counts when it resolved at the
        bonus source level.
        """
        source_wins: dict[str, list[tuple[WinningEntry, int]]] = {}
        for key in bonus.source_modalities:
            outcome = outcomes.get(key)
            if outcome is None:
                continue
            if outcome.rules.cascade and outcome.cascade_level != bonus.source_level:
                continue
            pool = results[key].pool
            for tier in outcome.rules.tiers:
                if tier.level != bonus.source_level or outcome.counts.get(tier.name, 0) == 0:
                    continue
                unit = pool.tier(tier.name).unit_prize
                for entry in outcome.tally.entries_for(tier.name):
                    source_wins.setdefault(entry.ticket_number, []).append((entry, unit))

        entries: list[WinningEntry] = []
        extras: dict[str, int] = {}
        for record in records:
            if record.cancelled or record.game_code not in bonus.game_codes:
                continue
            if not isinstance(record.body, LotoBody) or record.body.plus_digit != plus_digit:
                continue
            for source, unit in source_wins.get(record.ticket_number, []):
                extra = unit * source.combinations * bonus.multiplier
                entries.append(
                    WinningEntry.from_record(
                        record,
                        modality=bonus.key,
                        tier=BONUS_LEVEL,
                        level=BONUS_LEVEL,
                        combinations=source.combinations,
                        amount=extra,
                    )
                )
                extras[record.ticket_number] = extras.get(record.ticket_number, 0) + extra

        agencies = list(dict.fromkeys(entry.agency_key for entry in entries if not entry.is_web_sale))
        pool = distribute_bonus(
            bonus,
            extras=extras,
            winners=sum(entry.combinations for entry in entries),
            commission_agencies=len(agencies),
        )
        return ModalityResult(
            key=bonus.key,
            label=bonus.label,
            pool=pool,
            entries=entries,
            top_tier_agencies=agencies,
        )


__all__ = [
    "ModalityOutcome",
    "ModalityResult",
    "ModalityScrutiny",
    "ScrutinyEngine",
    "ScrutinyResult",
    "ScrutinyState",
]

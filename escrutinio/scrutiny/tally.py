"""Per-shard hit tallies that merge by plain sums."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from ..combinatorics import winners_by_level
from ..records.decoder import WagerRecord
from .rules import LETTERS_LEVEL, ModalityRules, TierKind


@dataclass(frozen=True)
class PlayedWager:
    """A record selected for a modality together with its hits."""

    record: WagerRecord
    hits: int


@dataclass(frozen=True)
class WinningEntry:
    """One record that won at least one combination of a tier."""

    modality: str
    tier: str
    level: Union[int, str]
    ticket_number: str
    jurisdiction_code: str
    selling_point_code: str
    is_web_sale: bool
    combinations: int
    amount: int = 0
    line_number: int = 0

    @classmethod
    def from_record(
        cls,
        record: WagerRecord,
        *,
        modality: str,
        tier: str,
        level: Union[int, str],
        combinations: int,
        amount: int = 0,
    ) -> "WinningEntry":
        return cls(
            modality=modality,
            tier=tier,
            level=level,
            ticket_number=record.ticket_number,
            jurisdiction_code=record.jurisdiction_code,
            selling_point_code=record.selling_point_code,
            is_web_sale=record.is_web_sale,
            combinations=combinations,
            amount=amount,
            line_number=record.line_number,
        )

    @property
    def agency_key(self) -> str:
        return f"{self.jurisdiction_code}{self.selling_point_code}"


def _sum_dicts(left: dict, right: dict) -> dict:
    merged = dict(left)
    for key, value in right.items():
        merged[key] = merged.get(key, 0) + value
    return merged


@dataclass
class TierTally:
    """Raw counts of one modality over a shard of records.

    ``winners`` holds winning combinations per tier name before any cascading
    is applied. Two tallies of disjoint shards combine with :meth:`merge`; the
    result does not depend on the order of the operands.
    """

    modality: str
    records: int = 0
    tickets: int = 0
    bets: int = 0
    stake: int = 0
    winners: dict[str, int] = field(default_factory=dict)
    refunds: dict[str, int] = field(default_factory=dict)
    bets_by_count: dict[int, int] = field(default_factory=dict)
    entries: list[WinningEntry] = field(default_factory=list)

    def merge(self, other: "TierTally") -> "TierTally":
        if other.modality != self.modality:
            raise ValueError(
                f"Cannot merge tallies of '{self.modality}' and '{other.modality}'"
            )
        entries = sorted(
            [*self.entries, *other.entries],
            key=lambda entry: (entry.line_number, entry.tier, entry.ticket_number),
        )
        return TierTally(
            modality=self.modality,
            records=self.records + other.records,
            tickets=self.tickets + other.tickets,
            bets=self.bets + other.bets,
            stake=self.stake + other.stake,
            winners=_sum_dicts(self.winners, other.winners),
            refunds=_sum_dicts(self.refunds, other.refunds),
            bets_by_count=_sum_dicts(self.bets_by_count, other.bets_by_count),
            entries=entries,
        )

    def winners_at(self, tier: str) -> int:
        return self.winners.get(tier, 0)

    def entries_for(self, tier: str) -> list[WinningEntry]:
        return [entry for entry in self.entries if entry.tier == tier]


def tally_shard(
    rules: ModalityRules,
    wagers: Iterable[PlayedWager],
    *,
    letters: Optional[str] = None,
) -> TierTally:
    """Count the winners of every tier of ``rules`` among ``wagers``.

    Parameters
    ----------
    rules : ModalityRules
        Modality rules with every level already resolved.
    wagers : Iterable[PlayedWager]
        Records accepted by the modality with their hit counts.
    letters : Optional[str], default: None
        Drawn letters, compared against ``letters_played`` for the letters tier.

    Returns
    -------
    TierTally
        Raw counts for the shard.
    """
    tally = TierTally(modality=rules.key)
    levels = rules.hit_levels
    pick = rules.pick_size
    for wager in wagers:
        record = wager.record
        tally.records += 1
        if record.counts_as_ticket:
            tally.tickets += 1
        tally.bets += record.bet_count
        tally.stake += record.bet_amount
        tally.bets_by_count[record.covered_count] = (
            tally.bets_by_count.get(record.covered_count, 0) + 1
        )

        by_level = winners_by_level(record.covered_count, wager.hits, pick, levels)
        for tier in rules.tiers:
            if tier.level == LETTERS_LEVEL:
                if letters and record.letters_played == letters:
                    combinations = 1
                else:
                    continue
            elif isinstance(tier.level, int):
                combinations = by_level.get(tier.level, 0)
                if not combinations:
                    continue
            else:
                continue

            refund = 0
            if tier.kind is TierKind.REFUND and record.bet_count:
                refund = combinations * (record.bet_amount // record.bet_count)
                tally.refunds[tier.name] = tally.refunds.get(tier.name, 0) + refund
            tally.winners[tier.name] = tally.winners.get(tier.name, 0) + combinations
            tally.entries.append(
                WinningEntry.from_record(
                    record,
                    modality=rules.key,
                    tier=tier.name,
                    level=tier.level,
                    combinations=combinations,
                    amount=refund,
                )
            )
    return tally


__all__ = ["PlayedWager", "TierTally", "WinningEntry", "tally_shard"]

"""Turn winner counts into prize pools, unit prizes and vacant amounts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from .labels import winners_text
from .rules import (
    BASIS_POINTS,
    BONUS_LEVEL,
    COMMISSION_LEVEL,
    BonusRule,
    ModalityRules,
    PoolSource,
    TierKind,
    TierRule,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrizeTier:
    """Settled figures of one tier.

    Attributes
    ----------
    name : str
        Tier identifier (``"primer_premio"``, ``"agenciero"`` ...).
    hit_level : Union[int, str]
        Hits paid by the tier or its symbolic level.
    kind : TierKind
        How the tier pays.
    winner_count : int
        Winners used for payout (0 for the lower levels of a resolved cascade).
    raw_winner_count : int
        Winners found by hit counting.
    pool_amount : int
        Money assigned to the tier, in minor units.
    unit_prize : int
        ``pool_amount // winner_count``; 0 when vacant.
    vacant_amount : int
        Equal to ``pool_amount`` when nobody won, 0 otherwise.
    carry_over_in : int
        Vacant amount of the previous draw added to the pool.
    base_amount : int
        Pool before carry-over and guarantee.
    guarantee_shortfall : int
        Amount added to reach the guaranteed minimum.
    paid_amount : int
        Money actually paid out.
    rounding_residue : int
        Remainder of the integer division of the pool.
    carries_over : bool
        Whether ``vacant_amount`` rolls into the next draw.
    """

    name: str
    hit_level: Union[int, str]
    kind: TierKind
    winner_count: int
    raw_winner_count: int
    pool_amount: int
    unit_prize: int
    vacant_amount: int
    carry_over_in: int = 0
    base_amount: int = 0
    guarantee_shortfall: int = 0
    paid_amount: int = 0
    rounding_residue: int = 0
    carries_over: bool = True

    @property
    def vacant(self) -> bool:
        return self.winner_count == 0

    @property
    def winners_text(self) -> str:
        return winners_text(self.winner_count)


@dataclass(frozen=True)
class PrizePool:
    """Distribution of one modality."""

    modality: str
    pool_source: PoolSource
    recaudacion_total: int
    distributable_amount: int
    tiers: tuple[PrizeTier, ...]
    carry_over_in: Mapping[str, int] = field(default_factory=dict)
    reserve_amount: int = 0
    agent_commission_amount: int = 0
    guarantee_shortfall: int = 0

    def tier(self, name: str) -> PrizeTier:
        for tier in self.tiers:
            if tier.name == name:
                return tier
        raise KeyError(f"Prize pool '{self.modality}' has no tier '{name}'")

    @property
    def total_paid(self) -> int:
        return sum(tier.paid_amount for tier in self.tiers)

    @property
    def total_vacant(self) -> int:
        return sum(tier.vacant_amount for tier in self.tiers)

    def carry_over_out(self) -> dict[str, int]:
        """Vacant amounts that roll into the next draw, keyed by tier name.

        The guarantee top-up is not carried; only the money the pool actually
        held is.
        """
        carried: dict[str, int] = {}
        for tier in self.tiers:
            if not tier.carries_over or tier.vacant_amount <= 0:
                continue
            amount = tier.vacant_amount - tier.guarantee_shortfall
            if amount > 0:
                carried[tier.name] = amount
        return carried


def settle_tier(
    rule: TierRule,
    *,
    winners: int,
    raw_winners: Optional[int] = None,
    pool: int = 0,
    carry_over_in: int = 0,
    base: int = 0,
    guarantee_shortfall: int = 0,
    level: Union[int, str, None] = None,
) -> PrizeTier:
    """Divide ``pool`` among ``winners`` following the kind of ``rule``.

    Pool and commission tiers split their pool; fixed tiers pay
    ``fixed_amount`` per winner; refund tiers pay back exactly their pool.
    """
    raw = winners if raw_winners is None else raw_winners
    if rule.kind is TierKind.FIXED:
        pool = rule.fixed_amount * winners
        base = pool

    if winners > 0:
        unit = pool // winners
        if rule.kind in (TierKind.REFUND, TierKind.BONUS):
            paid = pool
        else:
            paid = unit * winners
        vacant = 0
    else:
        unit = 0
        paid = 0
        vacant = pool
    return PrizeTier(
        name=rule.name,
        hit_level=rule.level if level is None else level,
        kind=rule.kind,
        winner_count=winners,
        raw_winner_count=raw,
        pool_amount=pool,
        unit_prize=unit,
        vacant_amount=vacant,
        carry_over_in=carry_over_in,
        base_amount=base,
        guarantee_shortfall=guarantee_shortfall,
        paid_amount=paid,
        rounding_residue=pool - paid - vacant,
        carries_over=rule.carries_over,
    )


def split_revenue(rules: ModalityRules, revenue: int) -> tuple[int, dict[str, int], int, int]:
    """Split ``revenue`` of a percentage modality.

    Returns
    -------
    tuple[int, dict[str, int], int, int]
        Distributable amount, base per pool tier, commission base and reserve.
        The flooring remainder is added to the reserve so the parts always add
        up to the distributable amount.
    """
    distributable = revenue * rules.distributable_bp // BASIS_POINTS
    bases = {
        tier.name: distributable * tier.weight_bp // BASIS_POINTS
        for tier in rules.tiers
        if tier.kind is TierKind.POOL
    }
    commission = 0
    if rules.commission is not None:
        commission = distributable * rules.commission.weight_bp // BASIS_POINTS
    reserve = distributable * rules.reserve_bp // BASIS_POINTS
    reserve += distributable - sum(bases.values()) - commission - reserve
    return distributable, bases, commission, reserve


def distribute_modality(
    rules: ModalityRules,
    *,
    revenue: int,
    counts: Mapping[str, int],
    raw_counts: Optional[Mapping[str, int]] = None,
    refunds: Optional[Mapping[str, int]] = None,
    cascade_level: Optional[int] = None,
    commission_agencies: int = 0,
    carry_over: Optional[Mapping[str, int]] = None,
    declared: Optional[Mapping[str, int]] = None,
) -> PrizePool:
    """Build the :class:`PrizePool` of one modality.

    Parameters
    ----------
    rules : ModalityRules
        Resolved modality rules.
    revenue : int
        Stake of the modality's active records, in minor units.
    counts : Mapping[str, int]
        Winners used for payout per tier name.
    raw_counts : Optional[Mapping[str, int]], default: None
        Winners found before cascading; defaults to ``counts``.
    refunds : Optional[Mapping[str, int]], default: None
        Total refund per refund tier.
    cascade_level : Optional[int], default: None
        Level that resolved a cascade, ``None`` when nobody won.
    commission_agencies : int, default: 0
        Unique non-web agencies that sold a top-tier winner.
    carry_over : Optional[Mapping[str, int]], default: None
        Vacant amounts of the previous draw per tier (percentage modalities).
    declared : Optional[Mapping[str, int]], default: None
        Officially declared pools per tier (declared modalities). They
        already include any carry-over.

    Returns
    -------
    PrizePool
        Settled tiers plus reserve, commission and guarantee figures.

    Notes
    -----
    Percentage modalities take ``distributable_bp`` of the revenue and give
    each pool tier its ``weight_bp``. The top tier is raised to its guarantee
    when the working pool falls short. Cascading modalities put every tier's
    money into one pool owned by the tier that resolved the cascade.
    """
    counts = dict(counts)
    raw_counts = dict(raw_counts) if raw_counts is not None else dict(counts)
    refunds = dict(refunds or {})
    carry_over = dict(carry_over or {})
    declared = dict(declared or {})
    percentage = rules.pool_source is PoolSource.PERCENTAGE

    distributable = 0
    bases: dict[str, int] = {}
    commission_base = 0
    reserve = 0
    if percentage:
        distributable, bases, commission_base, reserve = split_revenue(rules, revenue)
    else:
        for tier in rules.tiers:
            if tier.kind is TierKind.POOL:
                if tier.name not in declared:
                    logger.debug(f"No declared pool for {rules.key}.{tier.name}; using 0")
                bases[tier.name] = declared.get(tier.name, 0)
        reserve = declared.get("fondo_reserva", 0)
        distributable = sum(bases.values()) + reserve

    pools: dict[str, int] = {}
    carried_in: dict[str, int] = {}
    shortfalls: dict[str, int] = {}
    for tier in rules.tiers:
        if tier.kind is not TierKind.POOL:
            continue
        carried_in[tier.name] = carry_over.get(tier.name, 0) if percentage else 0
        working = bases[tier.name] + carried_in[tier.name]
        if percentage and tier.guarantee is not None and working < tier.guarantee:
            shortfalls[tier.name] = tier.guarantee - working
            working = tier.guarantee
        pools[tier.name] = working

    if rules.cascade:
        cascade_pool = sum(pools.values())
        owner = rules.top_tier.name
        if cascade_level is not None:
            owner = next(tier.name for tier in rules.tiers if tier.level == cascade_level)
        pools = {name: (cascade_pool if name == owner else 0) for name in pools}

    settled: list[PrizeTier] = []
    for tier in rules.tiers:
        winners = counts.get(tier.name, 0)
        raw = raw_counts.get(tier.name, winners)
        if tier.kind is TierKind.POOL:
            settled.append(
                settle_tier(
                    tier,
                    winners=winners,
                    raw_winners=raw,
                    pool=pools[tier.name],
                    carry_over_in=carried_in[tier.name],
                    base=bases[tier.name],
                    guarantee_shortfall=shortfalls.get(tier.name, 0),
                )
            )
        elif tier.kind is TierKind.REFUND:
            amount = refunds.get(tier.name, 0)
            settled.append(settle_tier(tier, winners=winners, raw_winners=raw, pool=amount, base=amount))
        else:
            settled.append(settle_tier(tier, winners=winners, raw_winners=raw))

    commission_amount = 0
    if rules.commission is not None:
        rule = rules.commission
        tier_rule = TierRule(
            name=rule.name,
            level=COMMISSION_LEVEL,
            kind=TierKind.COMMISSION,
            carries_over=rule.carries_over,
        )
        payable = rule.only_at_level is None or cascade_level == rule.only_at_level
        carried = carry_over.get(rule.name, 0) if percentage else 0
        base = 0
        if not payable:
            carried = 0
        elif rule.per_agency:
            base = rule.per_agency * commission_agencies
        elif percentage:
            base = commission_base
        elif rule.name in declared:
            base = declared[rule.name]
        elif rule.share_of:
            funded = sum(bases.get(name, 0) for name in rule.share_of)
            base = funded * rule.share_bp // BASIS_POINTS
        agencies = commission_agencies if payable else 0
        commission_tier = settle_tier(
            tier_rule,
            winners=agencies,
            raw_winners=commission_agencies,
            pool=base + carried,
            carry_over_in=carried,
            base=base,
        )
        settled.append(commission_tier)
        commission_amount = commission_tier.pool_amount

    return PrizePool(
        modality=rules.key,
        pool_source=rules.pool_source,
        recaudacion_total=revenue,
        distributable_amount=distributable,
        tiers=tuple(settled),
        carry_over_in={name: amount for name, amount in carry_over.items() if amount and percentage},
        reserve_amount=reserve,
        agent_commission_amount=commission_amount,
        guarantee_shortfall=sum(shortfalls.values()),
    )


def distribute_bonus(
    bonus: BonusRule,
    *,
    extras: Mapping[str, int],
    winners: int,
    commission_agencies: int = 0,
) -> PrizePool:
    """Build the pool of a bonus multiplier.

    ``extras`` maps each winning ticket to the extra amount it earns; the
    commission is a fixed amount per unique non-web agency and never carries.
    """
    total = sum(extras.values())
    bonus_tier = settle_tier(
        TierRule(name=BONUS_LEVEL, level=BONUS_LEVEL, kind=TierKind.BONUS, carries_over=False),
        winners=winners,
        pool=total,
        base=total,
    )
    tiers = [bonus_tier]
    commission_amount = 0
    if bonus.per_agency_commission:
        commission_amount = bonus.per_agency_commission * commission_agencies
        tiers.append(
            settle_tier(
                TierRule(
                    name=COMMISSION_LEVEL,
                    level=COMMISSION_LEVEL,
                    kind=TierKind.COMMISSION,
                    carries_over=False,
                ),
                winners=commission_agencies,
                pool=commission_amount,
                base=commission_amount,
            )
        )
    return PrizePool(
        modality=bonus.key,
        pool_source=PoolSource.DECLARED,
        recaudacion_total=0,
        distributable_amount=total + commission_amount,
        tiers=tuple(tiers),
        agent_commission_amount=commission_amount,
    )


__all__ = [
    "PrizePool",
    "PrizeTier",
    "distribute_bonus",
    "distribute_modality",
    "settle_tier",
    "split_revenue",
]

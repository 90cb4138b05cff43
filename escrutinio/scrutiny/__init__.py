"""Prize scrutiny: rules, tallies, distribution and reconciliation."""

from .extracto import PRIMARY_DRAW, Extracto, validate_draw
from .labels import winners_text
from .rules import (
    DEFAULT_RULES_REGISTRY,
    BonusRule,
    CommissionRule,
    GameRules,
    ModalityRules,
    PoolSource,
    RulesRegistry,
    TierKind,
    TierRule,
)
from .tally import PlayedWager, TierTally, WinningEntry, tally_shard
from .distribution import PrizePool, PrizeTier, distribute_bonus, distribute_modality, split_revenue
from .reconcile import (
    AgencyAggregate,
    OfficialFigures,
    ReconciliationItem,
    ReconciliationMismatch,
    ReconciliationReport,
    SalesTotals,
    aggregate_sales,
    attribute_prizes,
    reconcile,
)
from .engine import (
    ModalityOutcome,
    ModalityResult,
    ModalityScrutiny,
    ScrutinyEngine,
    ScrutinyResult,
    ScrutinyState,
)

__all__ = [
    "AgencyAggregate",
    "BonusRule",
    "CommissionRule",
    "DEFAULT_RULES_REGISTRY",
    "Extracto",
    "GameRules",
    "ModalityOutcome",
    "ModalityResult",
    "ModalityRules",
    "ModalityScrutiny",
    "OfficialFigures",
    "PRIMARY_DRAW",
    "PlayedWager",
    "PoolSource",
    "PrizePool",
    "PrizeTier",
    "ReconciliationItem",
    "ReconciliationMismatch",
    "ReconciliationReport",
    "RulesRegistry",
    "SalesTotals",
    "ScrutinyEngine",
    "ScrutinyResult",
    "ScrutinyState",
    "TierKind",
    "TierRule",
    "TierTally",
    "WinningEntry",
    "aggregate_sales",
    "attribute_prizes",
    "distribute_bonus",
    "distribute_modality",
    "reconcile",
    "split_revenue",
    "tally_shard",
    "validate_draw",
    "winners_text",
]

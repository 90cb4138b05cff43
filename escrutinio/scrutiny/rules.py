"""Prize rules per game family and the registry that maps games to them."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Union

from ..records.decoder import BrincoBody, Quini6Body, WagerRecord
from ..records.layouts import GameFamily, codes_for_family, layout_for
from .extracto import PRIMARY_DRAW, Extracto

BASIS_POINTS = 10_000

LETTERS_LEVEL = "letras"
COMMISSION_LEVEL = "agenciero"
BONUS_LEVEL = "multiplicador"
# Placeholder level resolved from ``Extracto.required_hits`` at run time.
REQUIRED_HITS = "aciertos_requeridos"


class TierKind(str, Enum):
    """How a tier turns its winners into money."""

    POOL = "pool"
    FIXED = "fixed"
    REFUND = "refund"
    COMMISSION = "commission"
    BONUS = "bonus"


class PoolSource(str, Enum):
    """Where the money of a modality's pools comes from."""

    PERCENTAGE = "percentage"
    DECLARED = "declared"


@dataclass(frozen=True)
class TierRule:
    """Definition of a single prize tier.

    Attributes
    ----------
    name : str
        Stable identifier (``"primer_premio"``, ``"letras"`` ...). Official
        figures and carry-over amounts are keyed by it.
    level : Union[int, str]
        Hit level paid by the tier, or a symbolic level.
    kind : TierKind
        Pool split, fixed amount or refund.
    weight_bp : int
        Share of the distributable amount in basis points.
    fixed_amount : int
        Amount paid per winner for :attr:`TierKind.FIXED` tiers.
    guarantee : Optional[int]
        Minimum pool guaranteed for the tier.
    carries_over : bool
        Whether a vacant pool rolls into the next draw.
    """

    name: str
    level: Union[int, str]
    kind: TierKind = TierKind.POOL
    weight_bp: int = 0
    fixed_amount: int = 0
    guarantee: Optional[int] = None
    carries_over: bool = True


@dataclass(frozen=True)
class CommissionRule:
    """Agent commission ("estímulo agenciero") paid to selling points of top winners.

    The pool is, in order of precedence: ``per_agency`` times the winning
    agencies, the declared official amount, ``weight_bp`` of the distributable
    amount (percentage modalities) or ``share_bp`` of the pools of the
    ``share_of`` tiers.
    """

    name: str = COMMISSION_LEVEL
    weight_bp: int = 0
    share_of: tuple[str, ...] = ()
    share_bp: int = 0
    per_agency: int = 0
    only_at_level: Optional[int] = None
    carries_over: bool = True


@dataclass(frozen=True)
class ModalityRules:
    """Everything needed to scrutinise one modality of a game.

    Attributes
    ----------
    key : str
        Registry-wide identifier (``"loto.desquite"``).
    label : str
        Display name.
    family : GameFamily
        Family the modality belongs to.
    game_codes : frozenset[str]
        Record game codes that play this modality.
    draw_key : str
        Name of the :class:`~escrutinio.scrutiny.extracto.Extracto` draw used.
    draw_size : int
        Numbers drawn.
    tiers : tuple[TierRule, ...]
        Tiers ordered from the highest level down.
    pool_source : PoolSource
        Percentage split of revenue or officially declared pools.
    distributable_bp : int
        Share of revenue that funds prizes, reserve and commission.
    reserve_bp : int
        Share of the distributable amount kept as reserve fund.
    commission : Optional[CommissionRule]
        Agent commission, if the modality pays one.
    cascade : bool
        Pay only the highest level with winners, from a single pool.
    letters_size : int
        Letters that must be drawn (0 when the modality has no letters).
    required_hits_default : Optional[int]
        Default level for a :data:`REQUIRED_HITS` tier.
    eligible_instancias : Optional[frozenset[str]]
        Instancias values allowed to play (Quini6 / Brinco).
    simple_bets_only : bool
        Covered bets do not take part.
    """

    key: str
    label: str
    family: GameFamily
    game_codes: frozenset[str]
    draw_key: str
    draw_size: int
    tiers: tuple[TierRule, ...]
    pool_source: PoolSource = PoolSource.DECLARED
    distributable_bp: int = 0
    reserve_bp: int = 0
    commission: Optional[CommissionRule] = None
    cascade: bool = False
    letters_size: int = 0
    required_hits_default: Optional[int] = None
    eligible_instancias: Optional[frozenset[str]] = None
    simple_bets_only: bool = False
    description: Optional[str] = None

    @property
    def pick_size(self) -> int:
        return layout_for(self.family).pick_size

    @property
    def number_ceiling(self) -> int:
        return layout_for(self.family).number_ceiling

    @property
    def top_tier(self) -> TierRule:
        return self.tiers[0]

    @property
    def hit_levels(self) -> tuple[int, ...]:
        """Integer levels counted by hit tallying, highest first."""
        return tuple(
            tier.level
            for tier in self.tiers
            if isinstance(tier.level, int) and tier.kind in (TierKind.POOL, TierKind.REFUND)
        )

    def tier(self, name: str) -> TierRule:
        for tier in self.tiers:
            if tier.name == name:
                return tier
        raise KeyError(f"Modality '{self.key}' has no tier '{name}'")

    def accepts(self, record: WagerRecord) -> bool:
        """Return ``True`` when ``record`` takes part in this modality."""
        if record.game_code not in self.game_codes:
            return False
        if self.simple_bets_only and record.covered_count != self.pick_size:
            return False
        if self.eligible_instancias is not None:
            body = record.body
            if isinstance(body, (Quini6Body, BrincoBody)):
                return body.instancias in self.eligible_instancias
            return False
        return True

    def resolve(self, extracto: Extracto) -> "ModalityRules":
        """Replace the :data:`REQUIRED_HITS` placeholder with the drawn level."""
        if not any(tier.level == REQUIRED_HITS for tier in self.tiers):
            return self
        level = extracto.required_hits.get(self.draw_key, self.required_hits_default)
        if level is None:
            raise ValueError(f"Modality '{self.key}' needs a required hit level")
        tiers = tuple(
            replace(tier, level=int(level)) if tier.level == REQUIRED_HITS else tier
            for tier in self.tiers
        )
        return replace(self, tiers=tiers)

    def validate(self) -> None:
        """Check the internal consistency of the rule set.

        Raises
        ------
        ValueError
            If tiers are missing or percentage weights do not add up to 100 %.
        """
        if not self.tiers:
            raise ValueError(f"Modality '{self.key}' defines no tiers")
        names = [tier.name for tier in self.tiers]
        if len(set(names)) != len(names):
            raise ValueError(f"Modality '{self.key}' repeats tier names")
        if self.pool_source is PoolSource.PERCENTAGE:
            if not 0 < self.distributable_bp <= BASIS_POINTS:
                raise ValueError(f"Modality '{self.key}' needs a distributable percentage")
            total = sum(tier.weight_bp for tier in self.tiers) + self.reserve_bp
            if self.commission is not None:
                total += self.commission.weight_bp
            if total != BASIS_POINTS:
                raise ValueError(
                    f"Weights of modality '{self.key}' add up to {total / 100:.2f}%, expected 100%"
                )


@dataclass(frozen=True)
class BonusRule:
    """Multiplier paid on top of a top-level win when a supplementary digit matches.

    A record sold under one of ``game_codes`` whose PLUS digit equals the drawn
    digit multiplies the prize its ticket won at ``source_level`` in any of
    ``source_modalities`` by ``multiplier`` (paid as an extra).
    """

    key: str
    label: str
    game_codes: frozenset[str]
    source_modalities: tuple[str, ...]
    source_level: int
    multiplier: int = 2
    per_agency_commission: int = 0


@dataclass(frozen=True)
class GameRules:
    """Complete rule set of a game family."""

    family: GameFamily
    modalities: tuple[ModalityRules, ...]
    bonus: Optional[BonusRule] = None
    description: Optional[str] = None

    @property
    def key(self) -> str:
        return self.family.value

    def modality(self, key: str) -> ModalityRules:
        for modality in self.modalities:
            if modality.key == key:
                return modality
        raise KeyError(f"Game '{self.key}' has no modality '{key}'")


class RulesRegistry:
    """Mutable registry mapping game families to their rules."""

    def __init__(self) -> None:
        self._rules: Dict[GameFamily, GameRules] = {}

    def register(self, rules: GameRules, *, replace: bool = False) -> None:
        """Register ``rules`` under their game family.

        Every modality is validated before registration.

        Parameters
        ----------
        rules : GameRules
            Rules to add to the registry.
        replace : bool, default: False
            When ``True`` an existing registration for the same family is
            overwritten. Otherwise a duplicate raises :class:`ValueError`.
        """
        if not replace and rules.family in self._rules:
            raise ValueError(f"Rules for '{rules.key}' are already registered")
        for modality in rules.modalities:
            modality.validate()
        self._rules[rules.family] = rules

    def get(self, family: Union[GameFamily, str]) -> GameRules:
        """Return the rules registered for ``family``."""
        try:
            return self._rules[GameFamily(family)]
        except (KeyError, ValueError) as exc:
            raise KeyError(f"No rules registered for game '{family}'") from exc

    def for_game_code(self, game_code: str) -> GameRules:
        """Return the rules of the game sold under ``game_code``."""
        for rules in self._rules.values():
            if game_code in codes_for_family(rules.family):
                return rules
        raise KeyError(f"No rules registered for game code '{game_code}'")

    def available_games(self) -> Dict[str, GameRules]:
        """Return a copy of the registered rules keyed by family name."""
        return {family.value: rules for family, rules in self._rules.items()}


def _poceada_rules() -> GameRules:
    return GameRules(
        family=GameFamily.POCEADA,
        description="20 numbers drawn from 00-99 plus 4 letters; bets play 8 to 15 numbers.",
        modalities=(
            ModalityRules(
                key="poceada",
                label="Poceada",
                family=GameFamily.POCEADA,
                game_codes=frozenset({"82"}),
                draw_key=PRIMARY_DRAW,
                draw_size=20,
                pool_source=PoolSource.PERCENTAGE,
                distributable_bp=4_500,
                reserve_bp=400,
                letters_size=4,
                tiers=(
                    TierRule("primer_premio", 8, weight_bp=6_200, guarantee=6_000_000_000),
                    TierRule("segundo_premio", 7, weight_bp=2_350),
                    TierRule("tercer_premio", 6, weight_bp=1_000),
                    TierRule(
                        LETTERS_LEVEL,
                        LETTERS_LEVEL,
                        kind=TierKind.FIXED,
                        fixed_amount=100_000,
                        carries_over=False,
                    ),
                ),
                commission=CommissionRule(weight_bp=50),
            ),
        ),
    )


def _quini6_modality(
    key: str,
    label: str,
    draw_key: str,
    tiers: tuple[TierRule, ...],
    **kwargs,
) -> ModalityRules:
    return ModalityRules(
        key=f"quini6.{key}",
        label=label,
        family=GameFamily.QUINI6,
        game_codes=frozenset({"69"}),
        draw_key=draw_key,
        draw_size=6,
        tiers=tiers,
        **kwargs,
    )


def _quini6_rules() -> GameRules:
    levels_654 = (
        TierRule("primer_premio", 6),
        TierRule("segundo_premio", 5),
        TierRule("tercer_premio", 4),
    )
    return GameRules(
        family=GameFamily.QUINI6,
        description="Five parallel draws of 6 numbers from 00-45; prizes come from official figures.",
        modalities=(
            _quini6_modality("tradicional_primera", "Tradicional Primera", "tradicional_primera", levels_654),
            _quini6_modality("tradicional_segunda", "Tradicional Segunda", "tradicional_segunda", levels_654),
            _quini6_modality(
                "revancha",
                "Revancha",
                "revancha",
                (TierRule("primer_premio", 6),),
                eligible_instancias=frozenset({"2", "3"}),
            ),
            _quini6_modality(
                "siempre_sale",
                "Siempre Sale",
                "siempre_sale",
                (TierRule("primer_premio", REQUIRED_HITS),),
                eligible_instancias=frozenset({"3"}),
                required_hits_default=6,
            ),
            _quini6_modality("premio_extra", "Premio Extra", "premio_extra", (TierRule("primer_premio", 6),)),
        ),
    )


def _loto_rules() -> GameRules:
    commission = CommissionRule(weight_bp=200)
    trad_tiers = (
        TierRule("primer_premio", 6, weight_bp=6_500),
        TierRule("segundo_premio", 5, weight_bp=1_500),
        TierRule("tercer_premio", 4, weight_bp=300),
    )

    def modality(code: str, key: str, label: str, tiers: tuple[TierRule, ...], **kwargs) -> ModalityRules:
        return ModalityRules(
            key=f"loto.{key}",
            label=label,
            family=GameFamily.LOTO,
            game_codes=frozenset({code}),
            draw_key=key,
            draw_size=6,
            tiers=tiers,
            **kwargs,
        )

    return GameRules(
        family=GameFamily.LOTO,
        description="Loto Plus: four modalities drawn separately plus the PLUS multiplier.",
        modalities=(
            modality("07", "tradicional", "Tradicional", trad_tiers, reserve_bp=1_500, commission=commission),
            modality("08", "match", "Match", trad_tiers, reserve_bp=1_500, commission=commission),
            modality(
                "09",
                "desquite",
                "Desquite",
                (TierRule("primer_premio", 6, weight_bp=8_000),),
                reserve_bp=1_800,
                commission=commission,
            ),
            modality(
                "10",
                "sale_o_sale",
                "Sale o Sale",
                (
                    # Sale o Sale leaves no carry-over
                    TierRule("primer_premio", 6, weight_bp=8_500, carries_over=False),
                    TierRule("premio_5", 5, carries_over=False),
                    TierRule("premio_4", 4, carries_over=False),
                    TierRule("premio_3", 3, carries_over=False),
                    TierRule("premio_2", 2, carries_over=False),
                    TierRule("premio_1", 1, carries_over=False),
                ),
                reserve_bp=1_500,
                cascade=True,
                commission=CommissionRule(
                    share_of=("primer_premio",),
                    share_bp=200,
                    only_at_level=6,
                    carries_over=False,
                ),
            ),
        ),
        bonus=BonusRule(
            key="loto.multiplicador",
            label="Multiplicador",
            game_codes=frozenset({"11"}),
            source_modalities=("loto.tradicional", "loto.match", "loto.desquite", "loto.sale_o_sale"),
            source_level=6,
            multiplier=2,
            per_agency_commission=50_000_000,
        ),
    )


def _loto5_rules() -> GameRules:
    return GameRules(
        family=GameFamily.LOTO5,
        description="5 numbers drawn from 00-36; three hits refund the stake.",
        modalities=(
            ModalityRules(
                key="loto5",
                label="Loto 5",
                family=GameFamily.LOTO5,
                game_codes=frozenset({"05"}),
                draw_key=PRIMARY_DRAW,
                draw_size=5,
                tiers=(
                    TierRule("primer_premio", 5),
                    TierRule("segundo_premio", 4),
                    TierRule("reintegro", 3, kind=TierKind.REFUND, carries_over=False),
                ),
                commission=CommissionRule(
                    share_of=("primer_premio", "segundo_premio"),
                    share_bp=100,
                ),
            ),
        ),
    )


def _brinco_rules() -> GameRules:
    return GameRules(
        family=GameFamily.BRINCO,
        description="Brinco Tradicional (6 to 3 hits) and Brinco Junior (siempre sale).",
        modalities=(
            ModalityRules(
                key="brinco.tradicional",
                label="Brinco Tradicional",
                family=GameFamily.BRINCO,
                game_codes=frozenset({"13"}),
                draw_key="tradicional",
                draw_size=6,
                tiers=(
                    TierRule("primer_premio", 6),
                    TierRule("segundo_premio", 5),
                    TierRule("tercer_premio", 4),
                    TierRule("cuarto_premio", 3),
                ),
            ),
            ModalityRules(
                key="brinco.junior",
                label="Brinco Junior",
                family=GameFamily.BRINCO,
                game_codes=frozenset({"13"}),
                draw_key="junior",
                draw_size=6,
                tiers=(TierRule("primer_premio", REQUIRED_HITS),),
                required_hits_default=5,
                simple_bets_only=True,
            ),
        ),
    )


DEFAULT_RULES_REGISTRY = RulesRegistry()
for _rules in (_poceada_rules(), _quini6_rules(), _loto_rules(), _loto5_rules(), _brinco_rules()):
    DEFAULT_RULES_REGISTRY.register(_rules)
del _rules


__all__ = [
    "BASIS_POINTS",
    "BONUS_LEVEL",
    "BonusRule",
    "COMMISSION_LEVEL",
    "CommissionRule",
    "DEFAULT_RULES_REGISTRY",
    "GameRules",
    "LETTERS_LEVEL",
    "ModalityRules",
    "PoolSource",
    "REQUIRED_HITS",
    "RulesRegistry",
    "TierKind",
    "TierRule",
]

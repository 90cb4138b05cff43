import unittest
from dataclasses import replace

from escrutinio.records import GameFamily
from escrutinio.scrutiny.distribution import (
    distribute_bonus,
    distribute_modality,
    settle_tier,
    split_revenue,
)
from escrutinio.scrutiny.rules import (
    DEFAULT_RULES_REGISTRY,
    CommissionRule,
    ModalityRules,
    PoolSource,
    TierKind,
    TierRule,
)

POCEADA = DEFAULT_RULES_REGISTRY.get("poceada").modality("poceada")
LOTO = DEFAULT_RULES_REGISTRY.get("loto")


def _poceada_without_guarantee() -> ModalityRules:
    top = replace(POCEADA.top_tier, guarantee=None)
    return replace(POCEADA, tiers=(top, *POCEADA.tiers[1:]))


class SplitRevenueTestCase(unittest.TestCase):
    def test_poceada_split(self):
        distributable, bases, commission, reserve = split_revenue(POCEADA, 1_000_000)
        self.assertEqual(distributable, 450_000)
        self.assertEqual(
            bases,
            {"primer_premio": 279_000, "segundo_premio": 105_750, "tercer_premio": 45_000},
        )
        self.assertEqual(commission, 2_250)
        self.assertEqual(reserve, 18_000)

    def test_flooring_residue_goes_to_reserve(self):
        for revenue in (999_999, 1_234_567, 7, 0):
            distributable, bases, commission, reserve = split_revenue(POCEADA, revenue)
            self.assertEqual(sum(bases.values()) + commission + reserve, distributable)
            self.assertGreaterEqual(reserve, distributable * POCEADA.reserve_bp // 10_000)


class SettleTierTestCase(unittest.TestCase):
    def test_pool_split_keeps_rounding_residue(self):
        tier = settle_tier(POCEADA.top_tier, winners=7, pool=279_000, base=279_000)
        self.assertEqual(tier.unit_prize, 39_857)
        self.assertEqual(tier.paid_amount, 278_999)
        self.assertEqual(tier.rounding_residue, 1)
        self.assertEqual(tier.vacant_amount, 0)
        self.assertLessEqual(tier.unit_prize * tier.winner_count, tier.pool_amount)

    def test_vacant_tier(self):
        tier = settle_tier(POCEADA.top_tier, winners=0, pool=279_000)
        self.assertTrue(tier.vacant)
        self.assertEqual(tier.unit_prize, 0)
        self.assertEqual(tier.vacant_amount, 279_000)
        self.assertEqual(tier.winners_text, "VACANTE")

    def test_fixed_tier_pays_per_winner(self):
        tier = settle_tier(POCEADA.tier("letras"), winners=3)
        self.assertEqual(tier.pool_amount, 300_000)
        self.assertEqual(tier.unit_prize, 100_000)
        self.assertEqual(tier.paid_amount, 300_000)
        self.assertEqual(tier.winners_text, "TRES (3) GANADORES")

    def test_refund_tier_pays_its_whole_pool(self):
        rule = TierRule("reintegro", 3, kind=TierKind.REFUND, carries_over=False)
        tier = settle_tier(rule, winners=3, pool=1_000)
        self.assertEqual(tier.paid_amount, 1_000)
        self.assertEqual(tier.rounding_residue, 0)


class DistributePercentageTestCase(unittest.TestCase):
    def test_vacant_top_tier_is_carried(self):
        rules = _poceada_without_guarantee()
        pool = distribute_modality(rules, revenue=1_000_000, counts={})
        top = pool.tier("primer_premio")

        self.assertEqual(pool.distributable_amount, 450_000)
        self.assertEqual(top.vacant_amount, 279_000)
        self.assertEqual(top.winner_count, 0)
        self.assertEqual(pool.carry_over_out()["primer_premio"], 279_000)
        self.assertNotIn("letras", pool.carry_over_out())
        self.assertEqual(pool.total_paid, 0)

    def test_carry_over_is_added_to_the_pool(self):
        rules = _poceada_without_guarantee()
        pool = distribute_modality(
            rules,
            revenue=1_000_000,
            counts={"primer_premio": 2},
            carry_over={"primer_premio": 279_000},
        )
        top = pool.tier("primer_premio")
        self.assertEqual(top.base_amount, 279_000)
        self.assertEqual(top.carry_over_in, 279_000)
        self.assertEqual(top.pool_amount, 558_000)
        self.assertEqual(top.unit_prize, 279_000)
        self.assertEqual(pool.carry_over_in, {"primer_premio": 279_000})
        self.assertNotIn("primer_premio", pool.carry_over_out())

    def test_guarantee_raises_the_top_pool(self):
        pool = distribute_modality(POCEADA, revenue=1_000_000, counts={"primer_premio": 1})
        top = pool.tier("primer_premio")
        self.assertEqual(top.pool_amount, 6_000_000_000)
        self.assertEqual(top.guarantee_shortfall, 6_000_000_000 - 279_000)
        self.assertEqual(pool.guarantee_shortfall, top.guarantee_shortfall)
        self.assertEqual(top.paid_amount, 6_000_000_000)

    def test_guarantee_top_up_is_not_carried(self):
        pool = distribute_modality(POCEADA, revenue=1_000_000, counts={})
        self.assertEqual(pool.tier("primer_premio").vacant_amount, 6_000_000_000)
        self.assertEqual(pool.carry_over_out()["primer_premio"], 279_000)

    def test_money_is_conserved(self):
        rules = _poceada_without_guarantee()
        pool = distribute_modality(
            rules,
            revenue=1_234_567,
            counts={"primer_premio": 3, "segundo_premio": 7, "agenciero": 2},
            commission_agencies=2,
        )
        pooled = sum(tier.pool_amount for tier in pool.tiers if tier.kind is not TierKind.FIXED)
        self.assertEqual(pooled + pool.reserve_amount, pool.distributable_amount)
        for tier in pool.tiers:
            self.assertEqual(tier.paid_amount + tier.rounding_residue + tier.vacant_amount, tier.pool_amount)

    def test_commission_is_shared_by_winning_agencies(self):
        pool = distribute_modality(
            _poceada_without_guarantee(),
            revenue=1_000_000,
            counts={"primer_premio": 1},
            commission_agencies=2,
        )
        commission = pool.tier("agenciero")
        self.assertEqual(commission.kind, TierKind.COMMISSION)
        self.assertEqual(commission.pool_amount, 2_250)
        self.assertEqual(commission.unit_prize, 1_125)
        self.assertEqual(pool.agent_commission_amount, 2_250)


class DistributeDeclaredTestCase(unittest.TestCase):
    def test_declared_pools_and_reserve(self):
        rules = LOTO.modality("loto.tradicional")
        pool = distribute_modality(
            rules,
            revenue=5_000_000,
            counts={"primer_premio": 1, "segundo_premio": 4},
            commission_agencies=1,
            declared={
                "primer_premio": 1_000_000,
                "segundo_premio": 400_000,
                "agenciero": 20_000,
                "fondo_reserva": 90_000,
            },
            carry_over={"primer_premio": 123},
        )
        self.assertIs(pool.pool_source, PoolSource.DECLARED)
        self.assertEqual(pool.tier("primer_premio").pool_amount, 1_000_000)
        self.assertEqual(pool.tier("primer_premio").carry_over_in, 0)
        self.assertEqual(pool.tier("segundo_premio").unit_prize, 100_000)
        self.assertEqual(pool.tier("tercer_premio").vacant_amount, 0)
        self.assertEqual(pool.tier("agenciero").unit_prize, 20_000)
        self.assertEqual(pool.reserve_amount, 90_000)
        self.assertEqual(pool.distributable_amount, 1_490_000)
        self.assertEqual(pool.carry_over_in, {})

    def test_commission_without_local_winners_is_vacant(self):
        rules = LOTO.modality("loto.tradicional")
        pool = distribute_modality(
            rules,
            revenue=0,
            counts={"primer_premio": 1},
            commission_agencies=0,
            declared={"primer_premio": 1_000_000, "agenciero": 20_000},
        )
        commission = pool.tier("agenciero")
        self.assertTrue(commission.vacant)
        self.assertEqual(commission.vacant_amount, 20_000)
        self.assertEqual(pool.carry_over_out(), {"agenciero": 20_000})

    def test_per_agency_commission_takes_precedence(self):
        rules = replace(
            LOTO.modality("loto.tradicional"),
            commission=CommissionRule(per_agency=5_000, share_of=("primer_premio",), share_bp=100),
        )
        pool = distribute_modality(
            rules,
            revenue=0,
            counts={"primer_premio": 3},
            commission_agencies=3,
            declared={"primer_premio": 900_000, "agenciero": 1},
        )
        self.assertEqual(pool.tier("agenciero").pool_amount, 15_000)
        self.assertEqual(pool.tier("agenciero").unit_prize, 5_000)


class CascadeTestCase(unittest.TestCase):
    def setUp(self):
        self.rules = LOTO.modality("loto.sale_o_sale")
        self.declared = {"primer_premio": 1_000_000, "premio_5": 500_000}

    def test_lower_level_takes_every_pool(self):
        pool = distribute_modality(
            self.rules,
            revenue=0,
            counts={"premio_5": 2},
            raw_counts={"premio_5": 2, "premio_4": 30},
            cascade_level=5,
            commission_agencies=2,
            declared=self.declared,
        )
        self.assertEqual(pool.tier("primer_premio").pool_amount, 0)
        self.assertEqual(pool.tier("premio_5").pool_amount, 1_500_000)
        self.assertEqual(pool.tier("premio_5").unit_prize, 750_000)
        self.assertEqual(pool.tier("premio_4").raw_winner_count, 30)
        self.assertEqual(pool.tier("premio_4").winner_count, 0)
        self.assertEqual(pool.tier("premio_4").vacant_amount, 0)
        # commission only pays when the cascade resolves at six hits
        self.assertEqual(pool.tier("agenciero").pool_amount, 0)
        self.assertEqual(pool.tier("agenciero").winner_count, 0)
        self.assertEqual(pool.carry_over_out(), {})

    def test_top_level_pays_commission_share(self):
        pool = distribute_modality(
            self.rules,
            revenue=0,
            counts={"primer_premio": 1},
            cascade_level=6,
            commission_agencies=1,
            declared=self.declared,
        )
        self.assertEqual(pool.tier("primer_premio").pool_amount, 1_500_000)
        self.assertEqual(pool.tier("agenciero").pool_amount, 20_000)

    def test_nobody_won(self):
        pool = distribute_modality(self.rules, revenue=0, counts={}, declared=self.declared)
        self.assertEqual(pool.tier("primer_premio").vacant_amount, 1_500_000)
        self.assertEqual(pool.carry_over_out(), {})


class RefundTestCase(unittest.TestCase):
    def test_refund_pays_stakes_back(self):
        rules = DEFAULT_RULES_REGISTRY.get("loto5").modality("loto5")
        pool = distribute_modality(
            rules,
            revenue=90_000,
            counts={"reintegro": 3},
            refunds={"reintegro": 9_000},
            declared={"primer_premio": 2_000_000, "segundo_premio": 300_000},
        )
        refund = pool.tier("reintegro")
        self.assertEqual(refund.kind, TierKind.REFUND)
        self.assertEqual(refund.paid_amount, 9_000)
        # nobody won the top tiers, so their pools and the commission share roll over
        self.assertEqual(
            pool.carry_over_out(),
            {"primer_premio": 2_000_000, "segundo_premio": 300_000, "agenciero": 23_000},
        )


class DistributeBonusTestCase(unittest.TestCase):
    def test_bonus_pool(self):
        pool = distribute_bonus(
            LOTO.bonus,
            extras={"000000000001": 2_000, "000000000002": 500},
            winners=2,
            commission_agencies=1,
        )
        self.assertEqual(pool.modality, "loto.multiplicador")
        self.assertEqual(pool.tier("multiplicador").paid_amount, 2_500)
        self.assertEqual(pool.tier("agenciero").paid_amount, 50_000_000)
        self.assertEqual(pool.agent_commission_amount, 50_000_000)
        self.assertEqual(pool.carry_over_out(), {})

    def test_bonus_without_winners_never_carries(self):
        pool = distribute_bonus(LOTO.bonus, extras={}, winners=0)
        self.assertEqual(pool.total_paid, 0)
        self.assertEqual(pool.carry_over_out(), {})


if __name__ == "__main__":
    unittest.main()

"""
Unit-тесты для resolve_access: чистая логика, без БД.
"""
import unittest

from babypeek.paywall.access import granting_purchase_ids, resolve_access
from babypeek.paywall.models import AccessContext, PurchaseFacts


def _ctx(*purchases, indexes=(0, 1, 2, 3), primary=0, owner=True):
    return AccessContext(
        job_id="job-1",
        variant_indexes=indexes,
        primary_variant_index=primary,
        purchases=tuple(purchases),
        viewer_is_owner=owner,
    )


def _purchase(status="completed", tier="single", variant_index=None, is_gift=False, pid="p1"):
    return PurchaseFacts(
        purchase_id=pid,
        status=status,
        tier=tier,
        variant_index=variant_index,
        is_gift=is_gift,
    )


class TestResolveAccess(unittest.TestCase):
    """Правила разблокировки вариантов."""

    def test_no_purchases_preview_only(self):
        decision = resolve_access(_ctx())
        self.assertEqual(decision.unlocked_variant_indexes, frozenset())
        self.assertEqual(decision.tier, "none")
        self.assertTrue(decision.show_preview)

    def test_single_defaults_to_primary(self):
        decision = resolve_access(_ctx(_purchase(), primary=2))
        self.assertEqual(decision.unlocked_variant_indexes, frozenset({2}))
        self.assertEqual(decision.tier, "single")
        self.assertFalse(decision.show_preview)

    def test_single_specific_variant(self):
        decision = resolve_access(_ctx(_purchase(variant_index=3)))
        self.assertTrue(decision.is_unlocked(3))
        self.assertFalse(decision.is_unlocked(0))
        self.assertTrue(decision.show_preview)

    def test_single_for_missing_variant_unlocks_nothing(self):
        decision = resolve_access(_ctx(_purchase(variant_index=2), indexes=(0, 1, 3)))
        self.assertEqual(decision.unlocked_variant_indexes, frozenset())
        self.assertEqual(decision.tier, "none")

    def test_all_unlocks_every_result(self):
        decision = resolve_access(_ctx(_purchase(tier="all"), indexes=(0, 1, 3)))
        self.assertEqual(decision.unlocked_variant_indexes, frozenset({0, 1, 3}))
        self.assertEqual(decision.tier, "all")
        self.assertFalse(decision.show_preview)

    def test_refunded_equals_no_purchase(self):
        refunded = resolve_access(_ctx(_purchase(status="refunded", tier="all")))
        nothing = resolve_access(_ctx())
        self.assertEqual(refunded, nothing)

    def test_pending_and_failed_grant_nothing(self):
        for status in ("pending", "failed"):
            decision = resolve_access(_ctx(_purchase(status=status)))
            self.assertEqual(decision.unlocked_variant_indexes, frozenset())

    def test_gift_unlocks_for_owner(self):
        decision = resolve_access(_ctx(_purchase(is_gift=True)))
        self.assertTrue(decision.is_unlocked(0))

    def test_gift_purchaser_gets_nothing(self):
        decision = resolve_access(_ctx(_purchase(is_gift=True, tier="all"), owner=False))
        self.assertEqual(decision.unlocked_variant_indexes, frozenset())
        self.assertTrue(decision.show_preview)

    def test_single_then_all_upgrades_tier(self):
        decision = resolve_access(
            _ctx(_purchase(variant_index=1, pid="p1"), _purchase(tier="all", pid="p2"))
        )
        self.assertEqual(decision.tier, "all")
        self.assertEqual(len(decision.unlocked_variant_indexes), 4)

    def test_no_results_yet(self):
        decision = resolve_access(_ctx(_purchase(), indexes=(), primary=None))
        self.assertEqual(decision.unlocked_variant_indexes, frozenset())
        self.assertTrue(decision.show_preview)
        self.assertFalse(decision.is_unlocked(None))


class TestGrantingPurchases(unittest.TestCase):
    """Какие покупки открывают конкретный вариант."""

    def test_single_and_all_both_grant_primary(self):
        ctx = _ctx(_purchase(pid="p1"), _purchase(tier="all", pid="p2"))
        self.assertEqual(granting_purchase_ids(ctx, 0), ("p1", "p2"))
        self.assertEqual(granting_purchase_ids(ctx, 3), ("p2",))

    def test_refunded_grants_nothing(self):
        ctx = _ctx(_purchase(status="refunded"))
        self.assertEqual(granting_purchase_ids(ctx, 0), ())

    def test_non_owner_gets_nothing(self):
        ctx = _ctx(_purchase(tier="all"), owner=False)
        self.assertEqual(granting_purchase_ids(ctx, 0), ())

    def test_unknown_variant(self):
        self.assertEqual(granting_purchase_ids(_ctx(_purchase(tier="all")), None), ())

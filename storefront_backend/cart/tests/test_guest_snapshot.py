# cart/tests/test_guest_snapshot.py

from datetime import timedelta

from django.test import TestCase, override_settings
from django.utils import timezone

from cart.services.guest_snapshot import (
    GuestCartItem,
    GuestCartSnapshot,
    load_snapshot,
    record_items,
)


class GuestSnapshotParsingTests(TestCase):
    """
    GUARANTEES:
    - Garbage payloads never raise, they become an empty snapshot
    - Expired snapshots are discarded
    - merged_once=True always means no items
    """

    def setUp(self):
        self.now = timezone.now()

    def test_non_dict_payload_is_empty(self):
        for raw in (None, "x", 3, ["a"]):
            snapshot = load_snapshot(raw, now=self.now)
            self.assertEqual(snapshot.items, [])
            self.assertFalse(snapshot.merged_once)

    def test_items_not_a_list_is_empty(self):
        snapshot = load_snapshot({"items": {"product_id": "p1"}}, now=self.now)
        self.assertEqual(snapshot.items, [])

    def test_invalid_items_are_filtered(self):
        raw = {
            "items": [
                {"product_id": "p1", "quantity": 2, "size": "M"},
                {"product_id": "", "quantity": 1},
                {"product_id": "p2", "quantity": 0},
                {"product_id": "p3", "quantity": "abc"},
                "not-an-item",
            ],
            "merged_once": False,
            "last_updated": self.now.isoformat(),
        }

        snapshot = load_snapshot(raw, now=self.now)

        self.assertEqual(snapshot.items, [GuestCartItem(product_id="p1", quantity=2, size="M")])

    def test_keep_invalid_items_when_asked(self):
        raw = {"items": [{"product_id": "p1", "quantity": 0}]}
        snapshot = load_snapshot(raw, now=self.now, drop_invalid=False)
        self.assertEqual(len(snapshot.items), 1)
        self.assertFalse(snapshot.items[0].is_valid)

    def test_camel_case_keys_are_accepted(self):
        raw = {"items": [{"productId": "p9", "quantity": 1}], "mergedOnce": False}
        snapshot = load_snapshot(raw, now=self.now)
        self.assertEqual(snapshot.items[0].product_id, "p9")

    def test_merged_snapshot_has_no_items(self):
        raw = {"items": [{"product_id": "p1", "quantity": 1}], "merged_once": True}
        snapshot = load_snapshot(raw, now=self.now)
        self.assertTrue(snapshot.merged_once)
        self.assertEqual(snapshot.items, [])

    @override_settings(GUEST_CART_TTL_DAYS=30)
    def test_expired_snapshot_is_discarded(self):
        raw = {
            "items": [{"product_id": "p1", "quantity": 1}],
            "merged_once": False,
            "last_updated": (self.now - timedelta(days=31)).isoformat(),
        }
        snapshot = load_snapshot(raw, now=self.now)
        self.assertEqual(snapshot.items, [])

    @override_settings(GUEST_CART_TTL_DAYS=30)
    def test_snapshot_within_ttl_is_kept(self):
        raw = {
            "items": [{"product_id": "p1", "quantity": 1}],
            "last_updated": (self.now - timedelta(days=29)).isoformat(),
        }
        snapshot = load_snapshot(raw, now=self.now)
        self.assertEqual(len(snapshot.items), 1)

    def test_record_items_rearms_merge(self):
        snapshot = record_items(
            [GuestCartItem(product_id="p1", quantity=1), GuestCartItem(product_id="p2", quantity=-1)],
            now=self.now,
        )
        self.assertFalse(snapshot.merged_once)
        self.assertEqual([i.product_id for i in snapshot.items], ["p1"])
        self.assertEqual(snapshot.last_updated, self.now)

    def test_cleared_snapshot_shape(self):
        cleared = GuestCartSnapshot.cleared(now=self.now).to_dict()
        self.assertEqual(cleared["items"], [])
        self.assertTrue(cleared["merged_once"])

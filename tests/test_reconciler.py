"""Tests for accessory reconciliation."""

import pytest

from pyCasaTunesBridge.accessory import Accessory
from pyCasaTunesBridge.accessory_id import derive_accessory_uuid
from pyCasaTunesBridge.enums import ReconcileAction
from pyCasaTunesBridge.models import PlatformInfo, ZoneRecord
from pyCasaTunesBridge.reconciler import (
    Reconciler,
    accessory_for_zone,
    reconcile,
)


def _zone(zone_id, name=None, **kwargs):
    return ZoneRecord(id=zone_id, name=name or zone_id.title(), **kwargs)


def _accessory(zone_id, name=None):
    return Accessory.from_zone(_zone(zone_id, name))


def _ids(zones):
    return [z.id for z in zones]


def _uuids(accessories):
    return [a.uuid for a in accessories]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class TestReconcile:

    def test_first_run_creates_everything(self):
        result = reconcile([], [_zone("z1"), _zone("z2")])
        assert _ids(result.to_create) == ["z1", "z2"]
        assert result.to_keep == []
        assert result.to_remove == []

    def test_steady_state_keeps_everything(self):
        previous = [_accessory("z1"), _accessory("z2")]
        result = reconcile(previous, [_zone("z1"), _zone("z2")])
        assert result.to_create == []
        assert [a for a, _ in result.to_keep] == previous
        assert result.to_remove == []

    def test_mixed_change(self):
        a, b = _accessory("a"), _accessory("b")
        result = reconcile([a, b], [_zone("b"), _zone("c")])
        assert _ids(result.to_create) == ["c"]
        assert [(acc, z.id) for acc, z in result.to_keep] == [(b, "b")]
        assert result.to_remove == [a]

    def test_empty_fetch_removes_everything(self):
        previous = [_accessory("z1"), _accessory("z2")]
        result = reconcile(previous, [])
        assert result.to_remove == previous
        assert result.to_create == []
        assert result.to_keep == []

    def test_both_empty(self):
        result = reconcile([], [])
        assert result.is_empty
        assert not result.has_structural_changes

    def test_rename_is_keep(self):
        previous = [_accessory("z1", "Kitchen")]
        result = reconcile(previous, [_zone("z1", "Kitchen Renamed")])
        assert len(result.to_keep) == 1
        accessory, zone = result.to_keep[0]
        assert accessory.display_name == "Kitchen"
        assert zone.name == "Kitchen Renamed"
        assert result.to_create == []
        assert result.to_remove == []

    def test_same_name_different_id(self):
        previous = [_accessory("z1", "Kitchen")]
        result = reconcile(previous, [_zone("z2", "Kitchen")])
        assert _ids(result.to_create) == ["z2"]
        assert _uuids(result.to_remove) == [derive_accessory_uuid("z1")]

    def test_keep_independent_of_order(self):
        previous = [_accessory("a"), _accessory("b"), _accessory("c")]
        forward = reconcile(previous, [_zone("a"), _zone("b"), _zone("c")])
        backward = reconcile(previous, [_zone("c"), _zone("b"), _zone("a")])
        assert {a.uuid for a, _ in forward.to_keep} == {
            a.uuid for a, _ in backward.to_keep
        }

    def test_orders(self):
        previous = [_accessory("r2"), _accessory("k"), _accessory("r1")]
        fresh = [_zone("c2"), _zone("k"), _zone("c1")]
        result = reconcile(previous, fresh)
        assert _ids(result.to_create) == ["c2", "c1"]
        assert _uuids(result.to_remove) == [
            derive_accessory_uuid("r2"), derive_accessory_uuid("r1"),
        ]

    def test_sets_are_disjoint_and_complete(self):
        previous = [_accessory(i) for i in ("a", "b", "c", "d")]
        fresh = [_zone(i) for i in ("c", "d", "e", "f")]
        result = reconcile(previous, fresh)

        created = {z.uuid for z in result.to_create}
        kept = {a.uuid for a, _ in result.to_keep}
        removed = {a.uuid for a in result.to_remove}

        assert not created & removed
        assert not created & kept
        assert not kept & removed
        assert created | kept == {z.uuid for z in fresh}
        assert kept | removed == {a.uuid for a in previous}

    def test_idempotent(self):
        previous = [_accessory("a"), _accessory("b")]
        fresh = [_zone("b"), _zone("c")]
        first = reconcile(previous, fresh)
        second = reconcile(previous, fresh)
        assert first == second

    def test_inputs_not_mutated(self):
        previous = [_accessory("a")]
        fresh = [_zone("b")]
        reconcile(previous, fresh)
        assert _uuids(previous) == [derive_accessory_uuid("a")]
        assert _ids(fresh) == ["b"]

    def test_duplicate_zone_collapsed(self):
        result = reconcile([], [_zone("z1", "First"), _zone("z1", "Second")])
        assert len(result.to_create) == 1
        assert result.to_create[0].name == "First"

    def test_duplicate_accessory_collapsed(self):
        first = _accessory("z1", "First")
        second = _accessory("z1", "Second")
        result = reconcile([first, second], [])
        assert result.to_remove == [first]

    def test_summary(self):
        result = reconcile([_accessory("a"), _accessory("b")],
                           [_zone("b"), _zone("c"), _zone("d")])
        assert result.summary() == {
            ReconcileAction.CREATE: 2,
            ReconcileAction.KEEP: 1,
            ReconcileAction.REMOVE: 1,
        }
        assert result.has_structural_changes


# ---------------------------------------------------------------------------
# Applying a classification
# ---------------------------------------------------------------------------

class TestReconciler:

    @pytest.fixture
    def cache(self):
        return {}

    def test_run_populates_cache(self, cache):
        reconciler = Reconciler(cache)
        info = PlatformInfo("CasaTunes", "Model7", "6.1.2")
        result, applied = reconciler.run([_zone("z1"), _zone("z2")], info)
        assert set(cache) == {derive_accessory_uuid("z1"),
                              derive_accessory_uuid("z2")}
        assert _uuids(applied.created) == _uuids(cache.values())
        assert all(a.information.model == "Model7" for a in cache.values())
        assert _ids(result.to_create) == ["z1", "z2"]

    def test_keep_refreshes_and_preserves_identity(self, cache):
        reconciler = Reconciler(cache)
        reconciler.run([_zone("z1", "Kitchen")])
        original = cache[derive_accessory_uuid("z1")]

        _, applied = reconciler.run(
            [_zone("z1", "Cuisine", power=True, volume=44)]
        )
        assert applied.kept == [original]
        assert cache[original.uuid] is original
        assert original.display_name == "Cuisine"
        assert original.power is True
        assert original.volume == 44

    def test_remove_drops_entry(self, cache):
        reconciler = Reconciler(cache)
        reconciler.run([_zone("a"), _zone("b")])
        _, applied = reconciler.run([_zone("b")])
        assert _uuids(applied.removed) == [derive_accessory_uuid("a")]
        assert list(cache) == [derive_accessory_uuid("b")]

    def test_second_run_is_stable(self, cache):
        reconciler = Reconciler(cache)
        zones = [_zone("a"), _zone("b")]
        reconciler.run(zones)
        result, applied = reconciler.run(zones)
        assert not result.has_structural_changes
        assert applied.created == []
        assert applied.removed == []
        assert len(cache) == 2


class TestAccessoryForZone:

    def test_found(self):
        acc = _accessory("z1")
        assert accessory_for_zone({acc.uuid: acc}, "z1") is acc

    def test_missing(self):
        assert accessory_for_zone({}, "z1") is None

    def test_empty_id(self):
        assert accessory_for_zone({}, "") is None

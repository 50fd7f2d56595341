"""Tests for the AccessoryStore persistence layer."""

import pytest
import yaml

from pyCasaTunesBridge.accessory import Accessory
from pyCasaTunesBridge.accessory_id import derive_accessory_uuid
from pyCasaTunesBridge.models import PlatformInfo, ZoneRecord
from pyCasaTunesBridge.persistence import ROOT_KEY, AccessoryStore


@pytest.fixture
def store(tmp_path):
    """An AccessoryStore pointing at a temporary directory."""
    return AccessoryStore(tmp_path / "accessories.yaml")


@pytest.fixture
def sample_tree():
    """A minimal cache document for testing."""
    return {
        ROOT_KEY: {
            "platformInfo": {
                "manufacturer": "CasaTunes",
                "model": "Model7",
                "softwareRevision": "6.1.2",
            },
            "accessories": [
                {
                    "uuid": derive_accessory_uuid("z1"),
                    "displayName": "Kitchen",
                    "zoneId": "z1",
                    "power": False,
                    "volume": 35,
                },
            ],
        }
    }


def _renamed(tree, name):
    entry = dict(tree[ROOT_KEY]["accessories"][0], displayName=name)
    return {ROOT_KEY: {**tree[ROOT_KEY], "accessories": [entry]}}


# ---------------------------------------------------------------------------
# Basic save / load
# ---------------------------------------------------------------------------

class TestSaveLoad:

    def test_save_creates_file(self, store, sample_tree):
        store.save(sample_tree)
        assert store.path.is_file()

    def test_load_returns_saved_data(self, store, sample_tree):
        store.save(sample_tree)
        assert store.load() == sample_tree

    def test_load_without_file_returns_none(self, store):
        assert store.load() is None

    def test_yaml_is_human_readable(self, store, sample_tree):
        store.save(sample_tree)
        content = store.path.read_text(encoding="utf-8")
        assert "casatunes:" in content
        assert "displayName: Kitchen" in content
        assert "volume: 35" in content


# ---------------------------------------------------------------------------
# Backup mechanism
# ---------------------------------------------------------------------------

class TestBackup:

    def test_backup_created_on_second_save(self, store, sample_tree):
        store.save(sample_tree)
        assert not store.backup_path.is_file()

        store.save(_renamed(sample_tree, "Updated"))
        assert store.backup_path.is_file()

        with open(store.backup_path, encoding="utf-8") as fh:
            backup_data = yaml.safe_load(fh)
        entry = backup_data[ROOT_KEY]["accessories"][0]
        assert entry["displayName"] == "Kitchen"

    def test_backup_contains_previous_version(self, store, sample_tree):
        store.save(sample_tree)
        store.save(_renamed(sample_tree, "V2"))
        store.save(_renamed(sample_tree, "V3"))
        with open(store.backup_path, encoding="utf-8") as fh:
            backup_data = yaml.safe_load(fh)
        assert backup_data[ROOT_KEY]["accessories"][0]["displayName"] == "V2"


# ---------------------------------------------------------------------------
# Recovery from corrupt primary
# ---------------------------------------------------------------------------

class TestRecovery:

    def test_corrupt_primary_falls_back_to_backup(self, store, sample_tree):
        store.save(sample_tree)
        store.save(_renamed(sample_tree, "Latest"))

        store.path.write_text("{{{{not: valid: yaml::::", encoding="utf-8")

        loaded = store.load()
        assert loaded is not None
        assert loaded[ROOT_KEY]["accessories"][0]["displayName"] == "Kitchen"

    def test_missing_primary_falls_back_to_backup(self, store, sample_tree):
        store.save(sample_tree)
        store.save(_renamed(sample_tree, "Latest"))
        store.path.unlink()
        assert store.load() is not None

    def test_primary_restored_from_backup(self, store, sample_tree):
        store.save(sample_tree)
        store.save(_renamed(sample_tree, "Latest"))
        store.path.write_text("- a list\n", encoding="utf-8")

        store.load()
        with open(store.path, encoding="utf-8") as fh:
            restored = yaml.safe_load(fh)
        assert isinstance(restored, dict)

    def test_both_corrupt_returns_none(self, store, sample_tree):
        store.save(sample_tree)
        store.save(sample_tree)
        store.path.write_text("{{{{not: valid", encoding="utf-8")
        store.backup_path.write_text("[unclosed", encoding="utf-8")
        assert store.load() is None


# ---------------------------------------------------------------------------
# Atomic write / housekeeping
# ---------------------------------------------------------------------------

class TestAtomicWrite:

    def test_no_tmp_file_remains(self, store, sample_tree):
        store.save(sample_tree)
        tmp = store.path.with_suffix(store.path.suffix + ".tmp")
        assert not tmp.exists()

    def test_creates_parent_dirs(self, tmp_path, sample_tree):
        store = AccessoryStore(tmp_path / "a" / "b" / "cache.yaml")
        store.save(sample_tree)
        assert store.path.is_file()


class TestDelete:

    def test_delete_removes_files(self, store, sample_tree):
        store.save(sample_tree)
        store.save(sample_tree)
        store.delete()
        assert not store.path.exists()
        assert not store.backup_path.exists()

    def test_delete_when_nothing_exists(self, store):
        store.delete()


# ---------------------------------------------------------------------------
# Accessory helpers
# ---------------------------------------------------------------------------

class TestAccessories:

    def _accessories(self):
        info = PlatformInfo("CasaTunes", "Model7", "6.1.2")
        return [
            Accessory.from_zone(
                ZoneRecord(id="z1", name="Kitchen", power=True, volume=10),
                info,
            ),
            Accessory.from_zone(ZoneRecord(id="z2", name="Patio"), info),
        ]

    def test_roundtrip(self, store):
        accessories = self._accessories()
        store.save_accessories(
            accessories, PlatformInfo("CasaTunes", "Model7", "6.1.2")
        )
        restored = store.load_accessories()
        assert [a.get_property_tree() for a in restored] == [
            a.get_property_tree() for a in accessories
        ]

    def test_platform_info(self, store):
        info = PlatformInfo("CasaTunes", "Model7", "6.1.2")
        store.save_accessories([], info)
        assert store.load_platform_info() == info

    def test_platform_info_absent(self, store):
        store.save_accessories(self._accessories())
        assert store.load_platform_info() is None

    def test_empty_cache(self, store):
        assert store.load_accessories() == []
        assert store.load_platform_info() is None

    def test_invalid_entries_skipped(self, store, sample_tree):
        sample_tree[ROOT_KEY]["accessories"].extend([
            "garbage",
            {"uuid": "bogus", "displayName": "X", "zoneId": "x"},
        ])
        store.save(sample_tree)
        restored = store.load_accessories()
        assert [a.zone_id for a in restored] == ["z1"]

    @pytest.mark.parametrize("field, value", [
        ("volume", None),
        ("volume", "loud"),
        ("power", None),
        ("information", ["not", "a", "mapping"]),
    ])
    def test_bad_field_skipped(self, store, sample_tree, field, value):
        sample_tree[ROOT_KEY]["accessories"].insert(0, {
            "uuid": derive_accessory_uuid("z0"),
            "displayName": "Broken",
            "zoneId": "z0",
            field: value,
        })
        store.save(sample_tree)
        restored = store.load_accessories()
        assert [a.zone_id for a in restored] == ["z1"]

    def test_duplicate_uuid_skipped(self, store, sample_tree):
        first = sample_tree[ROOT_KEY]["accessories"][0]
        sample_tree[ROOT_KEY]["accessories"].append(
            dict(first, displayName="Duplicate")
        )
        store.save(sample_tree)
        restored = store.load_accessories()
        assert len(restored) == 1
        assert restored[0].display_name == "Kitchen"

    def test_foreign_document(self, store):
        store.save({"other": {"name": "x"}})
        assert store.load_accessories() == []


class TestRepr:

    def test_repr(self, store):
        assert "accessories.yaml" in repr(store)

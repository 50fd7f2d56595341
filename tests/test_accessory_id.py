"""Tests for accessory UUID derivation."""

import uuid

import pytest

from pyCasaTunesBridge.accessory_id import (
    AccessoryNamespace,
    derive_accessory_uuid,
    is_accessory_uuid,
)


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------

class TestDerivation:

    def test_deterministic(self):
        assert derive_accessory_uuid("z1") == derive_accessory_uuid("z1")

    def test_different_ids_differ(self):
        assert derive_accessory_uuid("z1") != derive_accessory_uuid("z2")

    def test_is_uuid5_in_zone_namespace(self):
        expected = uuid.uuid5(AccessoryNamespace.ZONE, "z1")
        assert derive_accessory_uuid("z1") == str(expected)
        assert uuid.UUID(derive_accessory_uuid("z1")).version == 5

    def test_custom_namespace(self):
        other = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert derive_accessory_uuid("z1", other) != derive_accessory_uuid("z1")

    def test_case_sensitive(self):
        assert derive_accessory_uuid("zone") != derive_accessory_uuid("ZONE")

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            derive_accessory_uuid("")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:

    def test_derived_is_valid(self):
        assert is_accessory_uuid(derive_accessory_uuid("z1"))

    @pytest.mark.parametrize("value", [
        "not-a-uuid",
        "",
        None,
        42,
        "4B1C3A5E8F2D5C619E470D3A6B2F7C18",
    ])
    def test_invalid(self, value):
        assert not is_accessory_uuid(value)

    def test_upper_case_canonical_accepted(self):
        value = derive_accessory_uuid("z1").upper()
        assert is_accessory_uuid(value)

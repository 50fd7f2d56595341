"""Accessory identity derived from CasaTunes persistent zone IDs.

Every bridged accessory is identified by a UUID derived from the
zone's ``PersistentZoneID``.  The derivation is a one-way UUIDv5
mapping (RFC 4122 §4.3):

  1. Concatenate the 16-byte namespace UUID (network byte order) with
     the UTF-8 encoded zone ID.
  2. Compute SHA-1 over the concatenation.
  3. Keep bytes 0-15 of the digest, set the version nibble to 5 and
     the variant bits to RFC 4122.

The same zone ID therefore always yields the same UUID, across
restarts and across hosts, which is what lets a restored accessory be
matched against a freshly fetched zone.  Zone *names* never take part
in identity: they can be renamed by the user and are not unique.

Usage example::

    from pyCasaTunesBridge.accessory_id import derive_accessory_uuid

    uuid = derive_accessory_uuid("6D6A0C57-0A3E-4E4B")
"""

from __future__ import annotations

import uuid


# ---------------------------------------------------------------------------
# Well-known namespace UUIDs
# ---------------------------------------------------------------------------

class AccessoryNamespace:
    """Namespace UUIDs for UUIDv5-based accessory identity."""

    #: For accessories that represent a CasaTunes zone.
    ZONE = uuid.UUID("4b1c3a5e-8f2d-5c61-9e47-0d3a6b2f7c18")


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------

def derive_accessory_uuid(
    zone_id: str,
    namespace: uuid.UUID = AccessoryNamespace.ZONE,
) -> str:
    """Return the accessory UUID for the persistent zone ID *zone_id*.

    Parameters
    ----------
    zone_id:
        The CasaTunes ``PersistentZoneID``.
    namespace:
        Namespace UUID to derive in.  Defaults to
        :attr:`AccessoryNamespace.ZONE`.

    Raises
    ------
    ValueError
        If *zone_id* is empty.
    """
    if not zone_id:
        raise ValueError("Cannot derive an accessory UUID from an empty zone ID")
    return str(uuid.uuid5(namespace, zone_id))


def is_accessory_uuid(value: object) -> bool:
    """Return ``True`` if *value* is a canonical UUID string."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False

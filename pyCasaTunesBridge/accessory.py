"""Accessory: the locally cached representation of one zone.

An :class:`Accessory` is what the accessory registry sees of a
CasaTunes zone: a dimmable light whose ``On`` characteristic is the
zone's power and whose ``Brightness`` is its volume.  Each accessory is
bound to exactly one zone by identity: its UUID is derived from the
zone's persistent ID (see :mod:`pyCasaTunesBridge.accessory_id`), never
from the zone name.

Lifecycle
~~~~~~~~~

1. **Created** with :meth:`Accessory.from_zone` when a zone without a
   matching accessory is first seen.
2. **Refreshed** with :meth:`Accessory.refresh_from_zone` on every
   reconciliation cycle in which its zone is still present.
3. **Removed** by the platform when its zone disappears.

Between reconciliation cycles only the cached observable fields
(``power`` / ``volume``) change, through :meth:`Accessory.reflect`.

Persistence
~~~~~~~~~~~

Accessories serialise into the platform's YAML cache via
:meth:`get_property_tree` and are restored with
:meth:`Accessory.from_property_tree`.  Mutating a tracked attribute on
an accessory that belongs to a platform schedules a debounced save on
that platform.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Mapping, Optional, Union

from pyCasaTunesBridge.accessory_id import is_accessory_uuid
from pyCasaTunesBridge.enums import Capability
from pyCasaTunesBridge.exceptions import MalformedResponseError
from pyCasaTunesBridge.models import (
    NOT_APPLICABLE,
    PlatformInfo,
    ZoneRecord,
    clamp_volume,
    parse_bool,
    parse_volume,
)

if TYPE_CHECKING:
    from pyCasaTunesBridge.bridge import CasaTunesPlatform

logger = logging.getLogger(__name__)

#: Suffix appended to the zone name to form the service name.
SERVICE_NAME_SUFFIX: str = " Speakers"


# ---------------------------------------------------------------------------
# Accessory information block
# ---------------------------------------------------------------------------

@dataclass
class AccessoryInformation:
    """Static metadata shown for every accessory.

    The server reports neither firmware revisions nor serial numbers,
    so both are fixed to :data:`~pyCasaTunesBridge.models.NOT_APPLICABLE`.
    """

    manufacturer: str = ""
    model: str = ""
    software_revision: str = ""
    firmware_revision: str = NOT_APPLICABLE
    serial_number: str = NOT_APPLICABLE

    @classmethod
    def from_platform_info(
        cls, info: Optional[PlatformInfo]
    ) -> AccessoryInformation:
        """Build the information block from the server identity."""
        if info is None:
            return cls()
        return cls(
            manufacturer=info.manufacturer,
            model=info.model,
            software_revision=info.software_revision,
        )

    def to_dict(self) -> Dict[str, str]:
        """Return the block keyed by registry characteristic names."""
        return {
            "Manufacturer": self.manufacturer,
            "Model": self.model,
            "SoftwareRevision": self.software_revision,
            "FirmwareRevision": self.firmware_revision,
            "SerialNumber": self.serial_number,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> AccessoryInformation:
        """Inverse of :meth:`to_dict`."""
        data = data or {}
        return cls(
            manufacturer=str(data.get("Manufacturer", "")),
            model=str(data.get("Model", "")),
            software_revision=str(data.get("SoftwareRevision", "")),
            firmware_revision=str(data.get("FirmwareRevision", NOT_APPLICABLE)),
            serial_number=str(data.get("SerialNumber", NOT_APPLICABLE)),
        )


# ---------------------------------------------------------------------------
# Accessory
# ---------------------------------------------------------------------------

class Accessory:
    """A bridged zone as exposed to the accessory registry.

    Parameters
    ----------
    uuid:
        Stable accessory UUID derived from the bound zone's persistent
        ID.
    display_name:
        User-facing accessory name (the zone name).
    zone_id:
        Persistent ID of the bound zone; used for every API call.
    power:
        Cached power state.
    volume:
        Cached volume (0-100).
    information:
        Static metadata block.
    """

    #: Attribute names whose mutation triggers a debounced auto-save
    #: on the owning platform.
    _TRACKED_ATTRS: ClassVar[frozenset] = frozenset({
        "display_name", "zone_id", "power", "volume", "information",
    })

    # ---- attribute change tracking -----------------------------------

    def __setattr__(self, name: str, value: object) -> None:
        super().__setattr__(name, value)
        if (
            name in self._TRACKED_ATTRS
            and getattr(self, "_auto_save_enabled", False)
        ):
            platform = getattr(self, "_platform", None)
            if platform is not None:
                platform._schedule_auto_save()

    # ---- constructor -------------------------------------------------

    def __init__(
        self,
        *,
        uuid: str,
        display_name: str,
        zone_id: str,
        power: bool = False,
        volume: int = 0,
        information: Optional[AccessoryInformation] = None,
    ) -> None:
        self._auto_save_enabled: bool = False
        self._platform: Optional[CasaTunesPlatform] = None

        if not is_accessory_uuid(uuid):
            raise ValueError(f"Invalid accessory UUID: {uuid!r}")
        self._uuid: str = uuid.lower()

        self.display_name: str = display_name
        self.zone_id: str = zone_id
        self.power: bool = bool(power)
        self.volume: int = clamp_volume(volume)
        self.information: AccessoryInformation = (
            information or AccessoryInformation()
        )

        self._auto_save_enabled = True

    @classmethod
    def from_zone(
        cls,
        zone: ZoneRecord,
        info: Optional[PlatformInfo] = None,
    ) -> Accessory:
        """Create a new accessory for *zone*."""
        return cls(
            uuid=zone.uuid,
            display_name=zone.name,
            zone_id=zone.id,
            power=zone.power,
            volume=zone.volume,
            information=AccessoryInformation.from_platform_info(info),
        )

    # ---- read-only accessors -----------------------------------------

    @property
    def uuid(self) -> str:
        """The accessory UUID (read-only)."""
        return self._uuid

    @property
    def service_name(self) -> str:
        """Name of the light service shown in the registry."""
        return self.display_name + SERVICE_NAME_SUFFIX

    @property
    def platform(self) -> Optional[CasaTunesPlatform]:
        """The platform this accessory is registered with, if any."""
        return self._platform

    # ---- updates -----------------------------------------------------

    def refresh_from_zone(
        self,
        zone: ZoneRecord,
        info: Optional[PlatformInfo] = None,
    ) -> None:
        """Refresh the bound zone ID and cached fields from *zone*.

        Raises
        ------
        ValueError
            If *zone* does not derive to this accessory's UUID.
        """
        if zone.uuid != self._uuid:
            raise ValueError(
                f"Zone {zone.id!r} does not belong to accessory {self._uuid}"
            )
        self.zone_id = zone.id
        self.display_name = zone.name
        self.power = zone.power
        self.volume = zone.volume
        if info is not None:
            self.information = AccessoryInformation.from_platform_info(info)
        logger.debug("Set %s zone ID -> %s", self.display_name, self.zone_id)

    def reflect(self, capability: Capability, value: Union[bool, int]) -> None:
        """Update the cached value of *capability* without any I/O."""
        if capability is Capability.POWER:
            self.power = bool(value)
        elif capability is Capability.VOLUME:
            self.volume = clamp_volume(value)
        else:
            raise ValueError(f"Unsupported capability: {capability!r}")

    def value_of(self, capability: Capability) -> Union[bool, int]:
        """Return the cached value of *capability*."""
        if capability is Capability.POWER:
            return self.power
        if capability is Capability.VOLUME:
            return self.volume
        raise ValueError(f"Unsupported capability: {capability!r}")

    # ---- property dict (for the accessory registry) ------------------

    def get_properties(self) -> Dict[str, Any]:
        """Return everything the registry shows as a flat dictionary."""
        props: Dict[str, Any] = {
            "UUID": self._uuid,
            "displayName": self.display_name,
            "Name": self.service_name,
            Capability.POWER.value: self.power,
            Capability.VOLUME.value: self.volume,
        }
        props.update(self.information.to_dict())
        return props

    # ---- property tree (for YAML persistence) ------------------------

    def get_property_tree(self) -> Dict[str, Any]:
        """Return the accessory data for the persisted cache.

        The structure is::

            uuid: "..."
            displayName: "Kitchen"
            zoneId: "..."
            power: false
            volume: 35
            information:
              Manufacturer: CasaTunes
              ...
        """
        return {
            "uuid": self._uuid,
            "displayName": self.display_name,
            "zoneId": self.zone_id,
            "power": self.power,
            "volume": self.volume,
            "information": self.information.to_dict(),
        }

    @classmethod
    def from_property_tree(cls, node: Mapping[str, Any]) -> Accessory:
        """Recreate an accessory from a persisted node.

        Raises
        ------
        ValueError
            If the node lacks a valid UUID, display name or zone ID, or
            holds a field of the wrong type.
        """
        uuid = node.get("uuid")
        display_name = node.get("displayName")
        zone_id = node.get("zoneId")
        if not isinstance(display_name, str) or not isinstance(zone_id, str):
            raise ValueError(f"Incomplete accessory node: {dict(node)!r}")
        accessory = cls(
            uuid=str(uuid),
            display_name=display_name,
            zone_id=zone_id,
        )
        try:
            accessory._apply_state(node)
        except MalformedResponseError as exc:
            raise ValueError(f"Invalid accessory node: {exc}") from exc
        return accessory

    def _apply_state(self, state: Mapping[str, Any]) -> None:
        """Apply a persisted state dict; auto-save is suppressed."""
        prev = self._auto_save_enabled
        self._auto_save_enabled = False
        try:
            if "displayName" in state:
                self.display_name = state["displayName"]
            if "zoneId" in state:
                self.zone_id = state["zoneId"]
            if "power" in state:
                self.power = parse_bool(state["power"], "power")
            if "volume" in state:
                self.volume = parse_volume(state["volume"])
            if "information" in state:
                information = state["information"]
                if information is not None and not isinstance(
                    information, Mapping
                ):
                    raise MalformedResponseError(
                        f"Invalid information block: {information!r}"
                    )
                self.information = AccessoryInformation.from_dict(information)
        finally:
            self._auto_save_enabled = prev

    # ---- dunder -------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"Accessory(uuid={self._uuid!r}, "
            f"display_name={self.display_name!r}, "
            f"zone_id={self.zone_id!r})"
        )

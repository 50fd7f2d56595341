"""Group propagation of power and volume changes.

A CasaTunes *group zone* is one control surface over several zones.
Writing power or volume to the group changes every member on the
server, but the registry still shows each member as its own accessory.
After a successful write, :class:`GroupPropagationEngine` therefore
copies the new value onto the cached state of every member accessory
named in the server's reply.  This is a local reflection only: the
single group write is the only request sent.

Member zones that have no accessory (not reconciled yet, or already
removed) are skipped; the next reconciliation cycle corrects them.

Reads never use the cache.  Other clients (the CasaTunes app, voice
assistants) change zones at any time, so :meth:`get_state_value`
always asks the server.

Writes to the same zone are serialised with a per-zone
:class:`asyncio.Lock`.  Writes to different zones are not ordered.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Union

from pyCasaTunesBridge.accessory import Accessory
from pyCasaTunesBridge.client import CasaTunesClient
from pyCasaTunesBridge.enums import Capability
from pyCasaTunesBridge.models import VOLUME_MAX, VOLUME_MIN, ZoneRecord
from pyCasaTunesBridge.reconciler import accessory_for_zone

logger = logging.getLogger(__name__)

StateValue = Union[bool, int]


class GroupPropagationEngine:
    """Writes zone state and reflects it onto group members.

    Parameters
    ----------
    client:
        The API client used for reads and writes.
    accessories:
        The accessory cache, keyed by accessory UUID.  The engine only
        updates cached ``power`` / ``volume`` of existing entries; it
        never adds or removes entries.
    """

    def __init__(
        self,
        client: CasaTunesClient,
        accessories: Mapping[str, Accessory],
    ) -> None:
        self._client = client
        self._accessories = accessories
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, zone_id: str) -> asyncio.Lock:
        lock = self._locks.get(zone_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[zone_id] = lock
        return lock

    # ---- write path ----------------------------------------------------

    async def apply_state_change(
        self,
        zone_id: str,
        *,
        power: Optional[bool] = None,
        volume: Optional[int] = None,
    ) -> ZoneRecord:
        """Write power **or** volume of *zone_id* and reflect it locally.

        Returns the zone state reported by the server after the write.

        Raises
        ------
        ValueError
            If neither or both of *power* / *volume* are given, or
            *volume* is outside 0-100.  Nothing is sent.
        TransportError, MalformedResponseError
            If the write fails.  No cached state is changed.
        """
        if (power is None) == (volume is None):
            raise ValueError("Exactly one of power or volume must be given")

        capability: Capability
        value: StateValue
        if power is not None:
            capability, value = Capability.POWER, bool(power)
        else:
            if (
                isinstance(volume, bool)
                or not isinstance(volume, int)
                or not VOLUME_MIN <= volume <= VOLUME_MAX
            ):
                raise ValueError(
                    f"Volume must be an int in {VOLUME_MIN}..{VOLUME_MAX}, "
                    f"got {volume!r}"
                )
            capability, value = Capability.VOLUME, volume

        async with self._lock_for(zone_id):
            zone = await self._client.set_zone(
                zone_id,
                power=value if capability is Capability.POWER else None,
                volume=value if capability is Capability.VOLUME else None,
            )
            logger.debug(
                "Set zone %s characteristic %s -> %s",
                zone_id,
                capability.value,
                value,
            )

            self._reflect(zone_id, capability, value)
            if zone.is_group:
                reflected = self._propagate(zone, capability, value)
                logger.debug(
                    "Group %s: reflected %s=%s onto %d/%d members",
                    zone.name,
                    capability.value,
                    value,
                    len(reflected),
                    len(zone.member_zone_ids),
                )
        return zone

    def _reflect(
        self,
        zone_id: str,
        capability: Capability,
        value: StateValue,
    ) -> Optional[Accessory]:
        accessory = accessory_for_zone(self._accessories, zone_id)
        if accessory is not None:
            accessory.reflect(capability, value)
        return accessory

    def _propagate(
        self,
        group: ZoneRecord,
        capability: Capability,
        value: StateValue,
    ) -> List[Accessory]:
        """Reflect *value* onto every resolvable member of *group*."""
        reflected: List[Accessory] = []
        for member_id in group.member_zone_ids:
            if member_id == group.id:
                continue
            accessory = self._reflect(member_id, capability, value)
            if accessory is None:
                logger.debug(
                    "Group %s member %s has no accessory, skipping",
                    group.name,
                    member_id,
                )
                continue
            logger.debug(
                "Update %s characteristic %s -> %s",
                accessory.display_name,
                capability.value,
                value,
            )
            reflected.append(accessory)
        return reflected

    # ---- read path -----------------------------------------------------

    async def get_state_value(
        self,
        zone_id: str,
        capability: Capability,
    ) -> StateValue:
        """Read *capability* of *zone_id* fresh from the server.

        The cached value of the bound accessory is updated as a side
        effect.

        Raises
        ------
        TransportError, MalformedResponseError
            If the read fails.
        """
        zone = await self._client.get_zone(zone_id)
        value: StateValue = (
            zone.power if capability is Capability.POWER else zone.volume
        )
        self._reflect(zone_id, capability, value)
        logger.debug(
            "Get zone %s characteristic %s -> %s",
            zone_id,
            capability.value,
            value,
        )
        return value

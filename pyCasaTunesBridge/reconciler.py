"""Accessory reconciliation.

Aligns the set of bridged accessories with a freshly fetched zone list.
Identity is the accessory UUID derived from each zone's persistent ID:

1. ``U = {uuid(z.id) for z in fresh_zones}``.
2. Each fresh zone whose UUID matches an existing accessory is *kept*
   (paired with that accessory); every other fresh zone is *created*.
3. Each existing accessory whose UUID is not in ``U`` is *removed*.

:func:`reconcile` only classifies; it never mutates its inputs, so
running it twice on the same inputs gives the same result.
:class:`Reconciler` applies a classification to an accessory cache and
is the only code that adds or removes cache entries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pyCasaTunesBridge.accessory import Accessory
from pyCasaTunesBridge.accessory_id import derive_accessory_uuid
from pyCasaTunesBridge.enums import ReconcileAction
from pyCasaTunesBridge.models import PlatformInfo, ZoneRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class ReconcileResult:
    """Classification produced by :func:`reconcile`."""

    to_create: List[ZoneRecord] = field(default_factory=list)
    to_keep: List[Tuple[Accessory, ZoneRecord]] = field(default_factory=list)
    to_remove: List[Accessory] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """``True`` when nothing is created, kept or removed."""
        return not (self.to_create or self.to_keep or self.to_remove)

    @property
    def has_structural_changes(self) -> bool:
        """``True`` when accessories are created or removed."""
        return bool(self.to_create or self.to_remove)

    def summary(self) -> Dict[ReconcileAction, int]:
        """Number of entries per action."""
        return {
            ReconcileAction.CREATE: len(self.to_create),
            ReconcileAction.KEEP: len(self.to_keep),
            ReconcileAction.REMOVE: len(self.to_remove),
        }


@dataclass
class AppliedReconciliation:
    """Accessories touched by :meth:`Reconciler.apply`."""

    created: List[Accessory] = field(default_factory=list)
    kept: List[Accessory] = field(default_factory=list)
    removed: List[Accessory] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def reconcile(
    previous: Iterable[Accessory],
    fresh_zones: Sequence[ZoneRecord],
) -> ReconcileResult:
    """Classify *fresh_zones* against the *previous* accessories.

    ``to_create`` and ``to_keep`` follow the order of *fresh_zones*,
    ``to_remove`` the order of *previous*.  A zone ID listed more than
    once in *fresh_zones* is considered once (first occurrence wins).

    Parameters
    ----------
    previous:
        Accessories currently bridged (restored or from the last cycle).
    fresh_zones:
        Zones of the latest fetch, AirPlay zones already excluded.
    """
    existing: Dict[str, Accessory] = {}
    for accessory in previous:
        if accessory.uuid in existing:
            logger.warning(
                "Duplicate accessory %s (%s) ignored",
                accessory.uuid,
                accessory.display_name,
            )
            continue
        existing[accessory.uuid] = accessory

    result = ReconcileResult()
    target: Dict[str, ZoneRecord] = {}

    for zone in fresh_zones:
        uuid = zone.uuid
        if uuid in target:
            logger.warning(
                "Zone %s (%s) listed more than once, ignoring duplicate",
                zone.id,
                zone.name,
            )
            continue
        target[uuid] = zone

        accessory = existing.get(uuid)
        if accessory is not None:
            result.to_keep.append((accessory, zone))
        else:
            result.to_create.append(zone)

    result.to_remove = [
        accessory for uuid, accessory in existing.items()
        if uuid not in target
    ]
    return result


# ---------------------------------------------------------------------------
# Applying a classification
# ---------------------------------------------------------------------------

class Reconciler:
    """Applies reconciliation results to an accessory cache.

    Parameters
    ----------
    accessories:
        The cache, keyed by accessory UUID.  It is mutated in place.
    """

    def __init__(self, accessories: Dict[str, Accessory]) -> None:
        self._accessories = accessories

    def classify(self, fresh_zones: Sequence[ZoneRecord]) -> ReconcileResult:
        """Run :func:`reconcile` against the current cache."""
        return reconcile(list(self._accessories.values()), fresh_zones)

    def apply(
        self,
        result: ReconcileResult,
        info: Optional[PlatformInfo] = None,
    ) -> AppliedReconciliation:
        """Create, refresh and drop cache entries as *result* says.

        Kept accessories are refreshed from their zone; new accessories
        get their information block from *info*.
        """
        applied = AppliedReconciliation()

        for accessory, zone in result.to_keep:
            logger.info(
                "Restoring existing accessory from cache: %s",
                accessory.display_name,
            )
            accessory.refresh_from_zone(zone, info)
            self._accessories[accessory.uuid] = accessory
            applied.kept.append(accessory)

        for zone in result.to_create:
            logger.info("Adding new accessory: %s", zone.name)
            accessory = Accessory.from_zone(zone, info)
            self._accessories[accessory.uuid] = accessory
            applied.created.append(accessory)

        for accessory in result.to_remove:
            if self._accessories.pop(accessory.uuid, None) is not None:
                logger.info(
                    "Removing existing accessory from cache: %s",
                    accessory.display_name,
                )
                applied.removed.append(accessory)

        return applied

    def run(
        self,
        fresh_zones: Sequence[ZoneRecord],
        info: Optional[PlatformInfo] = None,
    ) -> Tuple[ReconcileResult, AppliedReconciliation]:
        """Classify *fresh_zones* and apply the result."""
        result = self.classify(fresh_zones)
        return result, self.apply(result, info)


def accessory_for_zone(
    accessories: Mapping[str, Accessory],
    zone_id: str,
) -> Optional[Accessory]:
    """Return the accessory bound to *zone_id*, or ``None``."""
    if not zone_id:
        return None
    return accessories.get(derive_accessory_uuid(zone_id))

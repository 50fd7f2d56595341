"""Accessory host: the registry the bridge publishes accessories to.

The host runtime (persistence of registered accessories, characteristic
dispatch to the user's devices, UUID bookkeeping) is not part of this
library.  :class:`AccessoryHost` is the narrow contract the platform
uses to tell it about reconciliation results.  Subclass it and override
the three notifications to connect a real registry; the base
implementation only logs.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pyCasaTunesBridge.accessory import Accessory

logger = logging.getLogger(__name__)


class AccessoryHost:
    """Receives accessory lifecycle notifications from the platform."""

    def register_accessories(self, accessories: Sequence[Accessory]) -> None:
        """Called with accessories created in a reconciliation cycle."""
        for accessory in accessories:
            logger.debug("Register %s (%s)", accessory.display_name, accessory.uuid)

    def update_accessories(self, accessories: Sequence[Accessory]) -> None:
        """Called with accessories kept (and refreshed) in a cycle."""
        for accessory in accessories:
            logger.debug("Update %s (%s)", accessory.display_name, accessory.uuid)

    def unregister_accessories(self, accessories: Sequence[Accessory]) -> None:
        """Called with accessories whose zone disappeared."""
        for accessory in accessories:
            logger.debug(
                "Unregister %s (%s)", accessory.display_name, accessory.uuid
            )

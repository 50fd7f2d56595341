"""Enumerations used across pyCasaTunesBridge.

A CasaTunes zone is exposed to the accessory registry as a dimmable
light: its power maps onto the ``On`` characteristic and its volume
onto ``Brightness``.  These are the only two capabilities a bridged
zone offers.
"""

from enum import Enum, unique


# ---------------------------------------------------------------------------
#  Characteristic dispatch
# ---------------------------------------------------------------------------


@unique
class Capability(str, Enum):
    """Controllable capability of a bridged zone.

    The value is the name of the registry characteristic the capability
    is exposed as.
    """

    POWER = "On"
    VOLUME = "Brightness"

    @property
    def zone_field(self) -> str:
        """Query-parameter / JSON field name on the CasaTunes side."""
        return _ZONE_FIELDS[self]


_ZONE_FIELDS = {
    Capability.POWER: "Power",
    Capability.VOLUME: "Volume",
}


@unique
class Operation(str, Enum):
    """Direction of a characteristic request issued by the registry."""

    GET = "get"
    SET = "set"


# ---------------------------------------------------------------------------
#  Reconciliation
# ---------------------------------------------------------------------------


@unique
class ReconcileAction(str, Enum):
    """Classification of a zone / accessory in one reconciliation pass."""

    CREATE = "create"
    KEEP = "keep"
    REMOVE = "remove"

"""Data records exchanged with the CasaTunes server.

:class:`ZoneRecord`
    One zone as reported by ``GET /zones`` or ``GET /zones/{id}``.
    Records are immutable and replaced wholesale on every fetch.

:class:`PlatformInfo`
    Server identity from ``GET /system/info``.  Fetched once per
    platform start and copied into every accessory's information
    block.

Field names on the wire are part of the server contract::

    zone:        Name, PersistentZoneID, Power, Volume, Shared,
                 ZoneGroupInfo[].zoneId
    system info: AppName, CasaTunesVersion, MatrixInfo[0].Title
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from pyCasaTunesBridge.accessory_id import derive_accessory_uuid
from pyCasaTunesBridge.exceptions import MalformedResponseError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Marker embedded in the persistent ID of AirPlay-origin zones.
AIRPLAY_MARKER: str = "@"

#: Prefix the server puts in front of the matrix model name.
MATRIX_PREFIX: str = "Matrix: "

#: Value reported for metadata the server does not provide.
NOT_APPLICABLE: str = "N/A"

VOLUME_MIN: int = 0
VOLUME_MAX: int = 100

#: Keys under which a ``ZoneGroupInfo`` member carries its zone ID.
_MEMBER_ID_KEYS = ("zoneId", "ZoneID", "PersistentZoneID")

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off", ""})


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------

def parse_bool(value: Any, field_name: str) -> bool:
    """Coerce a boolean-like wire value.

    The server reports ``Power`` as a JSON boolean but ``Shared`` as a
    string (``"True"`` / ``"False"``), so both forms are accepted, as
    are the integers 0 and 1.

    Raises
    ------
    MalformedResponseError
        If *value* cannot be interpreted as a boolean.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise MalformedResponseError(
        f"Field {field_name!r} is not boolean-like: {value!r}"
    )


def clamp_volume(value: int) -> int:
    """Clamp *value* to the 0-100 volume range."""
    return max(VOLUME_MIN, min(VOLUME_MAX, int(value)))


def parse_volume(value: Any) -> int:
    """Coerce a ``Volume`` wire value to an int in 0-100."""
    if isinstance(value, int) and not isinstance(value, bool):
        return clamp_volume(value)
    number: Optional[float] = None
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            pass
    # NaN and Infinity pass the JSON parser but are not volumes.
    if number is None or not math.isfinite(number):
        raise MalformedResponseError(
            f"Field 'Volume' is not numeric: {value!r}"
        )
    return clamp_volume(round(number))


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedResponseError(
            f"Missing or invalid field {key!r} in {dict(data)!r}"
        )
    return value


def _member_id(member: Any) -> str:
    if isinstance(member, str) and member:
        return member
    if isinstance(member, Mapping):
        for key in _MEMBER_ID_KEYS:
            value = member.get(key)
            if isinstance(value, str) and value:
                return value
    raise MalformedResponseError(f"Invalid ZoneGroupInfo member: {member!r}")


# ---------------------------------------------------------------------------
# ZoneRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ZoneRecord:
    """A CasaTunes zone.

    ``member_zone_ids`` is empty unless ``is_group`` is set.  ``id`` is
    the server's persistent zone ID and is the only field used for
    identity.
    """

    id: str
    name: str
    is_group: bool = False
    member_zone_ids: Tuple[str, ...] = ()
    power: bool = False
    volume: int = 0

    @property
    def is_airplay(self) -> bool:
        """Whether this is an AirPlay-origin zone (never bridged)."""
        return AIRPLAY_MARKER in self.id

    @property
    def uuid(self) -> str:
        """The accessory UUID derived from :attr:`id`."""
        return derive_accessory_uuid(self.id)

    @classmethod
    def from_json(cls, data: Any) -> ZoneRecord:
        """Build a record from one zone object of the server's JSON.

        ``PersistentZoneID`` and ``Name`` are required.  ``Power``,
        ``Volume`` and ``Shared`` default to off / 0 / not shared when
        absent (zone listings do not always carry them).

        Raises
        ------
        MalformedResponseError
            If *data* is not an object or a field has the wrong shape.
        """
        if not isinstance(data, Mapping):
            raise MalformedResponseError(
                f"Expected a zone object, got {type(data).__name__}"
            )

        zone_id = _require_str(data, "PersistentZoneID")
        name = _require_str(data, "Name")

        power = data.get("Power")
        volume = data.get("Volume")
        shared = data.get("Shared")
        is_group = parse_bool(shared, "Shared") if shared is not None else False

        members: Tuple[str, ...] = ()
        if is_group:
            group_info = data.get("ZoneGroupInfo") or []
            if not isinstance(group_info, (list, tuple)):
                raise MalformedResponseError(
                    f"Field 'ZoneGroupInfo' is not a list: {group_info!r}"
                )
            members = tuple(_member_id(m) for m in group_info)

        return cls(
            id=zone_id,
            name=name,
            is_group=is_group,
            member_zone_ids=members,
            power=parse_bool(power, "Power") if power is not None else False,
            volume=parse_volume(volume) if volume is not None else 0,
        )


# ---------------------------------------------------------------------------
# PlatformInfo
# ---------------------------------------------------------------------------

def normalize_model(model: str) -> str:
    """Strip :data:`MATRIX_PREFIX` from *model* if it starts with it.

    >>> normalize_model("Matrix: Model7")
    'Model7'
    >>> normalize_model("Model7")
    'Model7'
    """
    if model.startswith(MATRIX_PREFIX):
        return model[len(MATRIX_PREFIX):]
    return model


@dataclass
class PlatformInfo:
    """Identity of the CasaTunes server."""

    manufacturer: str = ""
    model: str = ""
    software_revision: str = ""

    @classmethod
    def from_json(cls, data: Any) -> PlatformInfo:
        """Build from the ``/system/info`` JSON.

        Raises
        ------
        MalformedResponseError
            If ``AppName``, ``CasaTunesVersion`` or
            ``MatrixInfo[0].Title`` is missing.  An empty title is
            accepted.
        """
        if not isinstance(data, Mapping):
            raise MalformedResponseError(
                f"Expected a system info object, got {type(data).__name__}"
            )
        matrix_info = data.get("MatrixInfo")
        if not isinstance(matrix_info, (list, tuple)) or not matrix_info:
            raise MalformedResponseError("Missing or empty field 'MatrixInfo'")
        first = matrix_info[0]
        if not isinstance(first, Mapping):
            raise MalformedResponseError(f"Invalid MatrixInfo entry: {first!r}")
        title = first.get("Title")
        if not isinstance(title, str):
            raise MalformedResponseError(
                f"Missing or invalid field 'Title' in {dict(first)!r}"
            )

        return cls(
            manufacturer=_require_str(data, "AppName"),
            model=normalize_model(title),
            software_revision=_require_str(data, "CasaTunesVersion"),
        )

    def to_dict(self) -> Dict[str, str]:
        """Return the info as a persistable dictionary."""
        return {
            "manufacturer": self.manufacturer,
            "model": self.model,
            "softwareRevision": self.software_revision,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> PlatformInfo:
        """Create a :class:`PlatformInfo` from a persisted dictionary."""
        data = data or {}
        return cls(
            manufacturer=str(data.get("manufacturer", "")),
            model=str(data.get("model", "")),
            software_revision=str(data.get("softwareRevision", "")),
        )

"""Async client for the CasaTunes REST API.

Only the small part of the API needed to bridge zones is covered::

    GET {base}/system/info                 → server identity
    GET {base}/zones                       → zone list
    GET {base}/zones/{zoneId}              → single zone state
    GET {base}/zones/{zoneId}?Power=true   → write power, returns zone
    GET {base}/zones/{zoneId}?Volume=42    → write volume, returns zone

Writes carry exactly one query parameter.  The server answers a write
with the zone's post-write state, which for a group zone includes the
member list.

Requests are never retried.  Network failures, timeouts and non-2xx
replies raise :class:`~pyCasaTunesBridge.exceptions.TransportError`;
bodies that are not JSON or lack expected fields raise
:class:`~pyCasaTunesBridge.exceptions.MalformedResponseError`.

Usage example::

    async with CasaTunesClient("http://casatunes.local:8735/api/v1") as client:
        info = await client.fetch_platform_info()
        for zone in await client.fetch_zones():
            print(zone.name, zone.power, zone.volume)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import aiohttp

from pyCasaTunesBridge.config import DEFAULT_REQUEST_TIMEOUT, is_configured_uri
from pyCasaTunesBridge.enums import Capability
from pyCasaTunesBridge.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    TransportError,
)
from pyCasaTunesBridge.models import (
    AIRPLAY_MARKER,
    VOLUME_MAX,
    VOLUME_MIN,
    PlatformInfo,
    ZoneRecord,
)

logger = logging.getLogger(__name__)

_NOT_CONFIGURED = "URI for CasaTunes API is not defined in the config"


class CasaTunesClient:
    """Thin async wrapper around the CasaTunes REST API.

    Parameters
    ----------
    uri:
        Base URI of the API.  A missing or placeholder URI (see
        :func:`~pyCasaTunesBridge.config.is_configured_uri`) leaves the
        client unconfigured: zone fetches are skipped and every other
        call raises :class:`ConfigurationError`.
    session:
        An existing :class:`aiohttp.ClientSession`.  It is used as-is
        and never closed by the client.  When omitted, the client
        creates its own session on first use and closes it in
        :meth:`close`.
    timeout:
        Total timeout of one request in seconds.
    """

    def __init__(
        self,
        uri: Optional[str],
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._uri: Optional[str] = uri.rstrip("/") if uri else uri
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self.last_error: Optional[ConfigurationError] = None

    # ---- properties --------------------------------------------------

    @property
    def uri(self) -> Optional[str]:
        """The base URI (without trailing slash)."""
        return self._uri

    @property
    def configured(self) -> bool:
        """Whether a usable base URI is set."""
        return is_configured_uri(self._uri)

    # ---- session handling --------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if the client created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> CasaTunesClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ---- low-level request -------------------------------------------

    def _require_configured(self) -> str:
        if not self.configured:
            raise ConfigurationError(_NOT_CONFIGURED)
        return self._uri  # type: ignore[return-value]

    async def _get_json(
        self,
        path: str,
        params: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """Issue one GET and decode the JSON body."""
        url = self._require_configured() + path
        session = self._ensure_session()
        logger.debug("GET %s params=%s", url, params)
        try:
            async with session.get(
                url, params=params, timeout=self._timeout
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise TransportError(
                        f"GET {url} returned HTTP {resp.status}",
                        url=url,
                        status=resp.status,
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    raise MalformedResponseError(
                        f"GET {url} returned invalid JSON: {exc}", url=url
                    ) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(
                f"GET {url} failed: {exc or type(exc).__name__}", url=url
            ) from exc

    @staticmethod
    def _zone_path(zone_id: str) -> str:
        return "/zones/" + quote(zone_id, safe="")

    # ---- zone directory ----------------------------------------------

    async def fetch_zones(self) -> List[ZoneRecord]:
        """Return all bridgeable zones in server order.

        AirPlay-origin zones (whose persistent ID contains ``@``) are
        dropped.  When the URI is not configured nothing is requested:
        the error is logged, recorded in :attr:`last_error` and an empty
        list is returned.

        Raises
        ------
        TransportError
            If the request fails.
        MalformedResponseError
            If the reply is not a list of zone objects.
        """
        if not self.configured:
            logger.error(_NOT_CONFIGURED)
            self.last_error = ConfigurationError(_NOT_CONFIGURED)
            return []
        self.last_error = None

        data = await self._get_json("/zones")
        if not isinstance(data, list):
            raise MalformedResponseError(
                f"Expected a zone list, got {type(data).__name__}",
                url=f"{self._uri}/zones",
            )

        zones: List[ZoneRecord] = []
        for entry in data:
            if isinstance(entry, Mapping) and AIRPLAY_MARKER in str(
                entry.get("PersistentZoneID", "")
            ):
                logger.debug(
                    "Skipping AirPlay zone %r", entry.get("PersistentZoneID")
                )
                continue
            zone = ZoneRecord.from_json(entry)
            logger.debug("Found zone: name = %s, id = %s", zone.name, zone.id)
            zones.append(zone)
        return zones

    async def fetch_platform_info(self) -> PlatformInfo:
        """Return the server identity.

        Raises
        ------
        ConfigurationError
            If the URI is not configured.
        TransportError, MalformedResponseError
            If the request fails or the reply lacks expected fields.
        """
        info = PlatformInfo.from_json(await self._get_json("/system/info"))
        logger.debug(
            "Manufacturer = %s, Model = %s, Software Revision = %s",
            info.manufacturer,
            info.model,
            info.software_revision,
        )
        return info

    # ---- single zone -------------------------------------------------

    async def get_zone(self, zone_id: str) -> ZoneRecord:
        """Read the current state of zone *zone_id* from the server."""
        return ZoneRecord.from_json(
            await self._get_json(self._zone_path(zone_id))
        )

    async def set_zone(
        self,
        zone_id: str,
        *,
        power: Optional[bool] = None,
        volume: Optional[int] = None,
    ) -> ZoneRecord:
        """Write power **or** volume of zone *zone_id*.

        Exactly one of *power* / *volume* must be given.  Returns the
        zone state the server reports after the write.

        Raises
        ------
        ValueError
            If neither or both fields are given, or *volume* is outside
            0-100.
        """
        if (power is None) == (volume is None):
            raise ValueError("Exactly one of power or volume must be given")

        params: Dict[str, str]
        if power is not None:
            params = {
                Capability.POWER.zone_field: "true" if power else "false"
            }
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
            params = {Capability.VOLUME.zone_field: str(volume)}

        return ZoneRecord.from_json(
            await self._get_json(self._zone_path(zone_id), params)
        )

    def __repr__(self) -> str:
        return f"CasaTunesClient({self._uri!r})"

"""CasaTunes platform: the owned context of one bridge instance.

A :class:`CasaTunesPlatform` ties the pieces together and owns all
shared state explicitly; nothing lives in module globals:

* the :class:`~pyCasaTunesBridge.client.CasaTunesClient`,
* the server identity (:class:`~pyCasaTunesBridge.models.PlatformInfo`),
* the accessory cache, keyed by accessory UUID,
* the YAML :class:`~pyCasaTunesBridge.persistence.AccessoryStore`,
* the :class:`~pyCasaTunesBridge.reconciler.Reconciler` (only writer
  of cache membership),
* the :class:`~pyCasaTunesBridge.propagation.GroupPropagationEngine`
  (only writer of cached power / volume),
* the :class:`~pyCasaTunesBridge.dispatch.CharacteristicDispatcher`.

Everything runs on one event loop.  The cache is not locked; callers
must not touch a platform from other threads.

Lifecycle
~~~~~~~~~

1. Construct with a :class:`~pyCasaTunesBridge.config.BridgeConfig`.
2. Restored accessories are handed in through
   :meth:`configure_accessory` (or loaded from ``state_path`` by
   :meth:`start`).
3. :meth:`start` fetches the server identity and runs the first
   reconciliation cycle; with ``rediscovery_interval`` set, further
   cycles run periodically.
4. Registry requests go through :meth:`handle`.
5. :meth:`stop` cancels rediscovery, flushes the cache and closes the
   client.

Usage example::

    import asyncio
    from pyCasaTunesBridge import BridgeConfig, CasaTunesPlatform

    config = BridgeConfig(
        uri="http://casatunes.local:8735/api/v1",
        state_path="accessories.yaml",
    )

    async def main():
        async with CasaTunesPlatform(config) as platform:
            for accessory in platform.accessories.values():
                print(accessory.service_name, accessory.power)

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from pyCasaTunesBridge.accessory import Accessory
from pyCasaTunesBridge.client import CasaTunesClient
from pyCasaTunesBridge.config import BridgeConfig
from pyCasaTunesBridge.dispatch import (
    CharacteristicDispatcher,
    CharacteristicRequest,
    CharacteristicResponse,
    StateValue,
)
from pyCasaTunesBridge.enums import Capability, Operation
from pyCasaTunesBridge.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    TransportError,
)
from pyCasaTunesBridge.host import AccessoryHost
from pyCasaTunesBridge.models import PlatformInfo, ZoneRecord
from pyCasaTunesBridge.persistence import AccessoryStore
from pyCasaTunesBridge.propagation import GroupPropagationEngine
from pyCasaTunesBridge.reconciler import (
    ReconcileResult,
    Reconciler,
    accessory_for_zone,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Debounce delay for auto-save in seconds.  Cached-state changes within
#: the window are coalesced into a single write.
AUTO_SAVE_DELAY: float = 1.0


# ---------------------------------------------------------------------------
# CasaTunesPlatform
# ---------------------------------------------------------------------------

class CasaTunesPlatform:
    """One CasaTunes server bridged to an accessory registry.

    Parameters
    ----------
    config:
        Bridge settings.
    host:
        Receives register / update / unregister notifications.
        Defaults to a logging-only :class:`AccessoryHost`.
    session:
        Optional :class:`aiohttp.ClientSession` shared with the caller.
    client:
        Optional pre-built client (mainly for tests).  Overrides
        *session*.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        host: Optional[AccessoryHost] = None,
        session: Optional[aiohttp.ClientSession] = None,
        client: Optional[CasaTunesClient] = None,
    ) -> None:
        self._config = config
        self._client: CasaTunesClient = client or CasaTunesClient(
            config.uri,
            session=session,
            timeout=config.request_timeout,
        )
        self._host: AccessoryHost = host or AccessoryHost()
        self._store: Optional[AccessoryStore] = (
            AccessoryStore(config.state_path) if config.state_path else None
        )

        # --- shared state ---------------------------------------------
        self._info: Optional[PlatformInfo] = None
        self._accessories: Dict[str, Accessory] = {}
        self._zones: Dict[str, ZoneRecord] = {}

        # --- components -----------------------------------------------
        self._reconciler = Reconciler(self._accessories)
        self._engine = GroupPropagationEngine(self._client, self._accessories)
        self._dispatcher = CharacteristicDispatcher(
            self._engine, self._accessories
        )

        # --- runtime state --------------------------------------------
        self._started: bool = False
        self._restored: bool = False
        self._rediscovery_task: Optional[asyncio.Task] = None
        self._save_handle: Optional[asyncio.TimerHandle] = None

        logger.debug("Finished initializing platform: %s", config.name)

    # ---- read-only accessors -----------------------------------------

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def client(self) -> CasaTunesClient:
        return self._client

    @property
    def info(self) -> Optional[PlatformInfo]:
        """Server identity, once fetched (or restored from the cache)."""
        return self._info

    @property
    def accessories(self) -> Dict[str, Accessory]:
        """A read-only view of all accessories (keyed by UUID)."""
        return dict(self._accessories)

    @property
    def zones(self) -> List[ZoneRecord]:
        """Zones of the latest successful fetch, in server order."""
        return list(self._zones.values())

    @property
    def engine(self) -> GroupPropagationEngine:
        return self._engine

    @property
    def dispatcher(self) -> CharacteristicDispatcher:
        return self._dispatcher

    @property
    def is_started(self) -> bool:
        return self._started

    def accessory_for_zone(self, zone_id: str) -> Optional[Accessory]:
        """Return the accessory bound to *zone_id*, or ``None``."""
        return accessory_for_zone(self._accessories, zone_id)

    # ---- restoration ---------------------------------------------------

    def configure_accessory(self, accessory: Accessory) -> None:
        """Hand a restored accessory to the platform.

        Must be called before the first reconciliation cycle so that the
        accessory is kept instead of created a second time.
        """
        logger.info("Loading accessory from cache: %s", accessory.display_name)
        accessory._platform = self
        self._accessories[accessory.uuid] = accessory

    def restore(self) -> int:
        """Load accessories from the YAML cache (once).

        Returns the number of accessories restored.
        """
        if self._restored or self._store is None:
            return 0
        self._restored = True

        if self._info is None:
            self._info = self._store.load_platform_info()
        restored = self._store.load_accessories()
        for accessory in restored:
            self.configure_accessory(accessory)
        return len(restored)

    # ---- lifecycle -----------------------------------------------------

    async def start(self) -> Optional[ReconcileResult]:
        """Fetch the server identity and run the first reconciliation.

        A missing URI is logged and leaves every accessory untouched.
        """
        if self._started:
            return None

        self.restore()
        self._started = True

        try:
            self._info = await self._client.fetch_platform_info()
        except ConfigurationError as exc:
            logger.error("%s", exc)
            return None
        except (TransportError, MalformedResponseError) as exc:
            logger.error("Could not fetch platform info: %s", exc)

        result = await self.discover()

        interval = self._config.rediscovery_interval
        if interval > 0:
            self._rediscovery_task = asyncio.ensure_future(
                self._rediscovery_loop(interval)
            )
        return result

    async def stop(self) -> None:
        """Stop rediscovery, persist pending changes and close the client."""
        task = self._rediscovery_task
        self._rediscovery_task = None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        try:
            self.flush()
        finally:
            await self._client.close()
            self._started = False
        logger.info("Platform %s stopped", self._config.name)

    async def __aenter__(self) -> CasaTunesPlatform:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ---- reconciliation ------------------------------------------------

    async def discover(self) -> Optional[ReconcileResult]:
        """Run one fetch-and-reconcile cycle.

        Returns ``None`` when the cycle was skipped: the URI is not
        configured, or the fetch failed while
        ``keep_accessories_on_fetch_error`` is set.
        """
        try:
            zones = await self._client.fetch_zones()
        except (TransportError, MalformedResponseError) as exc:
            if self._config.keep_accessories_on_fetch_error:
                logger.error(
                    "Zone fetch failed, keeping %d accessories: %s",
                    len(self._accessories),
                    exc,
                )
                return None
            logger.error("Zone fetch failed, reconciling as empty: %s", exc)
            zones = []
        else:
            if self._client.last_error is not None:
                logger.warning(
                    "Skipping reconciliation: %s", self._client.last_error
                )
                return None

        result, applied = self._reconciler.run(zones, self._info)
        self._zones = {zone.id: zone for zone in zones}

        for accessory in applied.created:
            accessory._platform = self
        for accessory in applied.removed:
            accessory._platform = None

        if applied.created:
            self._host.register_accessories(applied.created)
        if applied.kept:
            self._host.update_accessories(applied.kept)
        if applied.removed:
            self._host.unregister_accessories(applied.removed)

        logger.info(
            "Reconciled %d zones: %d created, %d kept, %d removed",
            len(zones),
            len(applied.created),
            len(applied.kept),
            len(applied.removed),
        )
        self.save()
        return result

    async def _rediscovery_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.discover()
            except Exception:  # noqa: BLE001
                logger.exception("Rediscovery cycle failed")

    # ---- characteristic requests ---------------------------------------

    async def handle(
        self, request: CharacteristicRequest
    ) -> CharacteristicResponse:
        """Dispatch one registry request."""
        return await self._dispatcher.handle(request)

    async def get_value(
        self, accessory_uuid: str, capability: Capability
    ) -> CharacteristicResponse:
        """Shorthand for a GET request."""
        return await self.handle(
            CharacteristicRequest(accessory_uuid, capability, Operation.GET)
        )

    async def set_value(
        self,
        accessory_uuid: str,
        capability: Capability,
        value: StateValue,
    ) -> CharacteristicResponse:
        """Shorthand for a SET request."""
        return await self.handle(
            CharacteristicRequest(
                accessory_uuid, capability, Operation.SET, value
            )
        )

    # ---- persistence ---------------------------------------------------

    def save(self) -> None:
        """Write the accessory cache now.

        Does nothing without a ``state_path``.  Cancels a pending
        auto-save.
        """
        self._cancel_auto_save()
        if self._store is None:
            logger.debug("No state_path configured, skipping save.")
            return
        self._store.save_accessories(self._accessories.values(), self._info)

    def flush(self) -> None:
        """Save immediately if an auto-save is pending."""
        if self._save_handle is not None:
            self.save()

    def _schedule_auto_save(self) -> None:
        """Schedule a debounced save after :data:`AUTO_SAVE_DELAY` seconds.

        Without a running event loop the save happens immediately.
        """
        if self._store is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.save()
            return
        if self._save_handle is not None:
            self._save_handle.cancel()
        self._save_handle = loop.call_later(AUTO_SAVE_DELAY, self._do_auto_save)

    def _cancel_auto_save(self) -> None:
        handle = self._save_handle
        if handle is not None:
            handle.cancel()
            self._save_handle = None

    def _do_auto_save(self) -> None:
        self._save_handle = None
        logger.debug("Auto-saving accessory cache.")
        try:
            self.save()
        except OSError:
            logger.exception("Auto-save of accessory cache failed")

    def __repr__(self) -> str:
        return (
            f"CasaTunesPlatform(name={self._config.name!r}, "
            f"uri={self._config.uri!r}, "
            f"accessories={len(self._accessories)})"
        )


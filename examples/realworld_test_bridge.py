#!/usr/bin/env python3
"""Real-world integration demo for pyCasaTunesBridge.

This script runs the bridge against a real CasaTunes server on the
local network:

  1. Create a CasaTunesPlatform persisting to a temporary YAML file.
  2. Fetch the server identity and bridge every (non-AirPlay) zone.
  3. Read power / volume of each accessory fresh from the server.
  4. Optionally toggle the power of one zone and restore it.
  5. Shut down, then start a second platform from the persisted cache
     and confirm every accessory is kept rather than re-created.
  6. Shut down completely and delete the persistence files.

Run from the project root::

    CASATUNES_URI=http://casatunes.local:8735/api/v1 \\
        python examples/realworld_test_bridge.py [zone-id-to-toggle]
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

# ---------------------------------------------------------------------------
# Ensure the package is importable when running from the repo root.
# ---------------------------------------------------------------------------
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from pyCasaTunesBridge import (  # noqa: E402
    Accessory,
    AccessoryHost,
    BridgeConfig,
    Capability,
    CasaTunesPlatform,
)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

#: Persistence file.  Lives in /tmp so it's cleaned up automatically.
STATE_FILE = Path("/tmp/pyCasaTunesBridge_demo_state.yaml")

#: Base URI of the CasaTunes API.
URI = os.environ.get("CASATUNES_URI", "undefined")

#: Seconds to leave a toggled zone in its new state.
TOGGLE_HOLD = 3

# ---------------------------------------------------------------------------
# Logging: colourful, timestamped, to stdout
# ---------------------------------------------------------------------------

BOLD = "\033[1m"
GREEN = "\033[32m"
CYAN = "\033[36m"
YELLOW = "\033[33m"
RED = "\033[31m"
RESET = "\033[0m"


class ColourFormatter(logging.Formatter):
    LEVEL_COLOURS = {
        logging.DEBUG: CYAN,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED + BOLD,
    }

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLOURS.get(record.levelno, "")
        ts = self.formatTime(record, "%H:%M:%S")
        return (
            f"{BOLD}{ts}{RESET} "
            f"{colour}{record.levelname:<8s}{RESET} "
            f"{record.name}: {record.getMessage()}"
        )


def setup_logging() -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColourFormatter())
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    root.addHandler(handler)
    # Suppress noisy aiohttp internals.
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Host: logs every lifecycle notification
# ---------------------------------------------------------------------------

class DemoHost(AccessoryHost):
    """Counts notifications so phase 2 can verify the restore."""

    def __init__(self) -> None:
        self.registered = 0
        self.updated = 0
        self.unregistered = 0
        self._logger = logging.getLogger("demo.host")

    def register_accessories(self, accessories: Sequence[Accessory]) -> None:
        self.registered += len(accessories)
        for acc in accessories:
            self._logger.info("+ %s (%s)", acc.service_name, acc.zone_id)

    def update_accessories(self, accessories: Sequence[Accessory]) -> None:
        self.updated += len(accessories)
        for acc in accessories:
            self._logger.info("= %s (%s)", acc.service_name, acc.zone_id)

    def unregister_accessories(self, accessories: Sequence[Accessory]) -> None:
        self.unregistered += len(accessories)
        for acc in accessories:
            self._logger.info("- %s (%s)", acc.service_name, acc.zone_id)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def dump_states(platform: CasaTunesPlatform) -> None:
    """Read power / volume of every accessory fresh from the server."""
    logger = logging.getLogger("demo")
    for acc in platform.accessories.values():
        power = await platform.get_value(acc.uuid, Capability.POWER)
        volume = await platform.get_value(acc.uuid, Capability.VOLUME)
        if not (power.ok and volume.ok):
            logger.warning(
                "  %-24s read failed: %s", acc.display_name,
                power.error or volume.error,
            )
            continue
        logger.info(
            "  %-24s power=%-5s volume=%3d",
            acc.display_name,
            power.value,
            volume.value,
        )


async def toggle_zone(platform: CasaTunesPlatform, zone_id: str) -> None:
    """Flip the power of *zone_id*, hold, and flip it back."""
    logger = logging.getLogger("demo")
    acc = platform.accessory_for_zone(zone_id)
    if acc is None:
        logger.error("Zone %s is not bridged", zone_id)
        return
    before = await platform.get_value(acc.uuid, Capability.POWER)
    if not before.ok:
        logger.error("Could not read %s: %s", acc.display_name, before.error)
        return
    logger.info("Switching %s -> %s", acc.display_name, not before.value)
    await platform.set_value(acc.uuid, Capability.POWER, not before.value)
    await asyncio.sleep(TOGGLE_HOLD)
    logger.info("Switching %s -> %s", acc.display_name, before.value)
    await platform.set_value(acc.uuid, Capability.POWER, before.value)


def banner(text: str) -> None:
    """Print a prominent banner to the console."""
    width = 60
    print()
    print(f"{BOLD}{CYAN}{'=' * width}{RESET}")
    print(f"{BOLD}{CYAN} {text.center(width - 2)} {RESET}")
    print(f"{BOLD}{CYAN}{'=' * width}{RESET}")
    print()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

async def main() -> None:
    setup_logging()
    logger = logging.getLogger("demo")
    toggle = sys.argv[1] if len(sys.argv) > 1 else None

    config = BridgeConfig(uri=URI, state_path=STATE_FILE)
    if not config.is_configured:
        logger.error("Set CASATUNES_URI to the CasaTunes API base URI.")
        return

    # ==================================================================
    # PHASE 1: Fresh start
    # ==================================================================
    banner("PHASE 1: Fresh platform start")

    host = DemoHost()
    async with CasaTunesPlatform(config, host=host) as platform:
        info = platform.info
        if info is not None:
            logger.info("Server: %s %s (%s)",
                        info.manufacturer, info.model, info.software_revision)
        logger.info("Bridged %d zones", len(platform.accessories))
        await dump_states(platform)
        if toggle:
            await toggle_zone(platform, toggle)

    original = sorted(platform.accessories)
    logger.info("Platform stopped, cache written to %s", STATE_FILE)

    # ==================================================================
    # PHASE 2: Restart from persisted state
    # ==================================================================
    banner("PHASE 2: Restart from persistence")

    host2 = DemoHost()
    async with CasaTunesPlatform(config, host=host2) as platform2:
        assert sorted(platform2.accessories) == original, (
            "Accessory set changed across restart"
        )
        assert host2.registered == 0, (
            f"{host2.registered} accessories were re-created"
        )
        logger.info(
            "Identity verified: %d accessories kept, none re-created.",
            host2.updated,
        )

    # ==================================================================
    # PHASE 3: Cleanup
    # ==================================================================
    banner("PHASE 3: Cleanup")

    if platform2._store is not None:
        platform2._store.delete()
        logger.info("Persistence files deleted: %s", STATE_FILE)
    assert not STATE_FILE.exists(), f"{STATE_FILE} still exists!"

    banner("DEMO COMPLETE")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print(f"\n{YELLOW}Interrupted by user.{RESET}")

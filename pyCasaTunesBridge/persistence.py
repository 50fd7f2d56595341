"""YAML-based accessory cache.

The accessory registry restores previously bridged accessories at
startup, before the first zone fetch.  This module keeps that cache in
a human-readable YAML file::

    casatunes:
      platformInfo:
        manufacturer: CasaTunes
        model: Model7
        softwareRevision: 6.1.2
      accessories:
        - uuid: "..."
          displayName: Kitchen
          zoneId: "..."
          power: false
          volume: 35
          information: {...}

Write strategy (atomic with backup):
  1. Copy the current file (if any) to ``<file>.bak``.
  2. Write ``<file>.tmp`` next to the target.
  3. ``os.replace`` the temporary file onto the target.

Load strategy (with fallback):
  1. Load the primary file.
  2. On failure, load ``<file>.bak`` and restore the primary from it.
  3. If both fail, return ``None`` so the caller starts fresh.

Usage example::

    store = AccessoryStore("/var/lib/casatunes-bridge/accessories.yaml")
    store.save_accessories(platform.accessories.values(), platform.info)
    accessories = store.load_accessories()
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from pyCasaTunesBridge.accessory import Accessory
from pyCasaTunesBridge.models import PlatformInfo

logger = logging.getLogger(__name__)

#: Type alias for the persisted document.
CacheTree = Dict[str, Any]

#: Top-level key of the persisted document.
ROOT_KEY: str = "casatunes"

_BACKUP_SUFFIX = ".bak"
_TMP_SUFFIX = ".tmp"


class AccessoryStore:
    """YAML-backed accessory cache with automatic backup / recovery.

    Parameters
    ----------
    path:
        Path to the primary YAML file.  Parent directories are created
        on first :meth:`save`.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._backup_path = self._path.with_suffix(
            self._path.suffix + _BACKUP_SUFFIX
        )
        self._tmp_path = self._path.with_suffix(
            self._path.suffix + _TMP_SUFFIX
        )

    # ---- public properties -------------------------------------------

    @property
    def path(self) -> Path:
        """The primary YAML file path."""
        return self._path

    @property
    def backup_path(self) -> Path:
        """The backup file path (``<path>.bak``)."""
        return self._backup_path

    # ---- raw save / load ---------------------------------------------

    def save(self, tree: CacheTree) -> None:
        """Persist *tree* to the YAML file (with backup).

        Raises
        ------
        OSError
            If the file cannot be written.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)

        if self._path.is_file():
            try:
                shutil.copy2(str(self._path), str(self._backup_path))
            except OSError:
                logger.warning(
                    "Failed to create backup %s, continuing anyway.",
                    self._backup_path,
                )

        try:
            with open(self._tmp_path, "w", encoding="utf-8") as fh:
                yaml.safe_dump(
                    tree,
                    fh,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                )
        except OSError:
            logger.error("Failed to write temporary file %s", self._tmp_path)
            raise

        try:
            os.replace(str(self._tmp_path), str(self._path))
        except OSError:
            logger.error(
                "Failed to replace %s with %s", self._path, self._tmp_path
            )
            raise

        logger.info("Saved accessory cache to %s", self._path)

    def load(self) -> Optional[CacheTree]:
        """Load the cache document (primary, then backup).

        Returns ``None`` if neither file could be loaded.
        """
        tree = self._try_load(self._path)
        if tree is not None:
            return tree

        tree = self._try_load(self._backup_path)
        if tree is not None:
            logger.warning(
                "Primary file %s not usable, restored from backup %s",
                self._path,
                self._backup_path,
            )
            try:
                shutil.copy2(str(self._backup_path), str(self._path))
            except OSError:
                logger.warning("Could not restore primary from backup.")
            return tree

        logger.info("No accessory cache found, starting fresh.")
        return None

    def delete(self) -> None:
        """Remove the primary, backup and temporary files."""
        for p in (self._path, self._backup_path, self._tmp_path):
            try:
                p.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove %s", p)

    # ---- accessory helpers -------------------------------------------

    def save_accessories(
        self,
        accessories: Iterable[Accessory],
        platform_info: Optional[PlatformInfo] = None,
    ) -> None:
        """Persist *accessories* (and the server identity, if known)."""
        node: Dict[str, Any] = {}
        if platform_info is not None:
            node["platformInfo"] = platform_info.to_dict()
        node["accessories"] = [a.get_property_tree() for a in accessories]
        self.save({ROOT_KEY: node})

    def load_accessories(self) -> List[Accessory]:
        """Restore the cached accessories.

        Entries that cannot be restored are skipped with a warning, as
        are duplicates of an already restored UUID.
        """
        node = self._root_node()
        accessories: List[Accessory] = []
        seen = set()
        for entry in node.get("accessories") or []:
            if not isinstance(entry, dict):
                logger.warning("Skipping invalid cache entry %r", entry)
                continue
            try:
                accessory = Accessory.from_property_tree(entry)
            except (ValueError, TypeError) as exc:
                logger.warning("Skipping cache entry: %s", exc)
                continue
            if accessory.uuid in seen:
                logger.warning(
                    "Skipping duplicate cache entry for %s", accessory.uuid
                )
                continue
            seen.add(accessory.uuid)
            accessories.append(accessory)
        return accessories

    def load_platform_info(self) -> Optional[PlatformInfo]:
        """Return the cached server identity, if any."""
        info = self._root_node().get("platformInfo")
        if not isinstance(info, dict):
            return None
        return PlatformInfo.from_dict(info)

    def _root_node(self) -> Dict[str, Any]:
        tree = self.load()
        node = tree.get(ROOT_KEY) if tree else None
        return node if isinstance(node, dict) else {}

    # ---- helpers ------------------------------------------------------

    @staticmethod
    def _try_load(path: Path) -> Optional[CacheTree]:
        """Load and parse a single YAML file; ``None`` on any failure."""
        if not path.is_file():
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Failed to load %s: %s", path, exc)
            return None

        if not isinstance(data, dict):
            logger.warning(
                "Expected a mapping at top level in %s, got %s",
                path,
                type(data).__name__,
            )
            return None

        return data

    def __repr__(self) -> str:
        return f"AccessoryStore({str(self._path)!r})"

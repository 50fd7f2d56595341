"""Bridge configuration.

The bridge is configured with a small YAML document.  Either the
document is the platform block itself::

    uri: http://casatunes.local:8735/api/v1
    name: CasaTunes
    statePath: /var/lib/casatunes-bridge/accessories.yaml

or it follows the homebridge layout with a ``platforms`` list, in which
case the entry whose ``platform`` is ``CasaTunes`` is used::

    platforms:
      - platform: CasaTunes
        uri: http://casatunes.local:8735/api/v1

A URI that is empty or contains the literal ``undefined`` (what an
unfilled config template renders to) counts as *not configured*.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from pyCasaTunesBridge.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Platform identifier in a homebridge-style ``platforms`` list.
PLATFORM_NAME: str = "CasaTunes"

#: Token marking an unset URI.
UNDEFINED_TOKEN: str = "undefined"

DEFAULT_REQUEST_TIMEOUT: float = 10.0


def is_configured_uri(uri: Optional[str]) -> bool:
    """Return ``False`` if *uri* is empty or a placeholder."""
    return bool(uri) and UNDEFINED_TOKEN not in str(uri)


# ---------------------------------------------------------------------------
# BridgeConfig
# ---------------------------------------------------------------------------

@dataclass
class BridgeConfig:
    """Settings of one bridge instance.

    Parameters
    ----------
    uri:
        Base URI of the CasaTunes REST API.  All endpoints are relative
        to it.
    name:
        Name of the platform instance (used in log messages).
    state_path:
        YAML file caching the bridged accessories between restarts.
        ``None`` disables persistence.
    request_timeout:
        Total timeout of a single HTTP request in seconds.
    rediscovery_interval:
        Seconds between reconciliation cycles after startup.  ``0``
        reconciles only once, at startup.
    keep_accessories_on_fetch_error:
        When the zone fetch fails, leave the accessory
        set untouched instead of reconciling against an empty list.
    """

    uri: Optional[str] = None
    name: str = PLATFORM_NAME
    state_path: Optional[Path] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    rediscovery_interval: float = 0.0
    keep_accessories_on_fetch_error: bool = True

    def __post_init__(self) -> None:
        if self.uri is not None:
            self.uri = str(self.uri).rstrip("/")
        if self.state_path is not None:
            self.state_path = Path(self.state_path)
        if self.request_timeout <= 0:
            raise ConfigurationError(
                f"requestTimeout must be positive, got {self.request_timeout}"
            )
        if self.rediscovery_interval < 0:
            raise ConfigurationError(
                "rediscoveryInterval must not be negative, "
                f"got {self.rediscovery_interval}"
            )

    @property
    def is_configured(self) -> bool:
        """Whether a usable CasaTunes URI is set."""
        return is_configured_uri(self.uri)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BridgeConfig:
        """Create a :class:`BridgeConfig` from a platform block."""
        try:
            return cls(
                uri=data.get("uri"),
                name=str(data.get("name") or PLATFORM_NAME),
                state_path=data.get("statePath"),
                request_timeout=float(
                    data.get("requestTimeout", DEFAULT_REQUEST_TIMEOUT)
                ),
                rediscovery_interval=float(
                    data.get("rediscoveryInterval", 0.0)
                ),
                keep_accessories_on_fetch_error=bool(
                    data.get("keepAccessoriesOnFetchError", True)
                ),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        """Return the config as a platform block (inverse of :meth:`from_dict`)."""
        return {
            "platform": PLATFORM_NAME,
            "name": self.name,
            "uri": self.uri,
            "statePath": str(self.state_path) if self.state_path else None,
            "requestTimeout": self.request_timeout,
            "rediscoveryInterval": self.rediscovery_interval,
            "keepAccessoriesOnFetchError": self.keep_accessories_on_fetch_error,
        }


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config(path: Union[str, Path]) -> BridgeConfig:
    """Read a :class:`BridgeConfig` from the YAML file at *path*.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or parsed, or holds no usable
        platform block.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read config {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected a mapping at top level in {path}, "
            f"got {type(data).__name__}"
        )

    block: Any = data
    if "platforms" in data:
        block = next(
            (
                entry for entry in data["platforms"] or []
                if isinstance(entry, dict)
                and entry.get("platform") == PLATFORM_NAME
            ),
            None,
        )
        if block is None:
            raise ConfigurationError(
                f"No '{PLATFORM_NAME}' platform block in {path}"
            )

    config = BridgeConfig.from_dict(block)
    if not config.is_configured:
        logger.warning("Config %s: URI for CasaTunes API is not defined", path)
    logger.debug("Loaded config %s: %s", path, config)
    return config

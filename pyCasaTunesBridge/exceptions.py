"""Exceptions raised by pyCasaTunesBridge.

Every error is terminal to the single operation that raised it:

* :class:`ConfigurationError`: the CasaTunes URI is missing or still
  set to a placeholder.  The operation is skipped, nothing is retried
  and no accessory state changes.
* :class:`TransportError`: the server could not be reached or replied
  with a non-2xx status.
* :class:`MalformedResponseError`: the server replied, but the JSON
  did not have the expected shape.
"""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base class for all pyCasaTunesBridge errors."""


class ConfigurationError(BridgeError):
    """The bridge is not (or not correctly) configured."""


class TransportError(BridgeError):
    """A request to the CasaTunes server failed at the transport level.

    Parameters
    ----------
    message:
        Human-readable description.
    url:
        The requested URL, when known.
    status:
        The HTTP status code for non-2xx replies, ``None`` for network
        failures and timeouts.
    """

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class MalformedResponseError(BridgeError):
    """The CasaTunes server returned data of an unexpected shape."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url

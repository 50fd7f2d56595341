"""Characteristic request dispatch.

The accessory registry asks for or changes one characteristic of one
accessory at a time.  Each such request is handled by a plain
coroutine looked up in a table keyed by ``(Capability, Operation)``:

=================  =======  ==========================================
Capability         Op       Handler
=================  =======  ==========================================
``POWER`` (On)     GET      fresh read of the zone's ``Power``
``POWER`` (On)     SET      power write + group propagation
``VOLUME``         GET      fresh read of the zone's ``Volume``
``VOLUME``         SET      volume write + group propagation
=================  =======  ==========================================

:meth:`CharacteristicDispatcher.handle` is the failure boundary: any
bridge error raised while handling a request is logged and returned as
an error response, so one failing accessory never affects another.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Mapping, Optional, Tuple, Union

from pyCasaTunesBridge.accessory import Accessory
from pyCasaTunesBridge.enums import Capability, Operation
from pyCasaTunesBridge.exceptions import BridgeError, ConfigurationError
from pyCasaTunesBridge.propagation import GroupPropagationEngine

logger = logging.getLogger(__name__)

StateValue = Union[bool, int]


@dataclass(frozen=True)
class CharacteristicRequest:
    """One GET or SET request from the registry."""

    accessory_uuid: str
    capability: Capability
    operation: Operation
    value: Optional[StateValue] = None


@dataclass(frozen=True)
class CharacteristicResponse:
    """Result of a :class:`CharacteristicRequest`.

    ``value`` is the read value for GET requests and ``None`` for SET
    requests.  ``error`` is set when the request failed.
    """

    value: Optional[StateValue] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


#: Signature of a request handler.
Handler = Callable[
    [Accessory, CharacteristicRequest], Awaitable[Optional[StateValue]]
]


class CharacteristicDispatcher:
    """Routes characteristic requests to capability handlers.

    Parameters
    ----------
    engine:
        Performs the reads and writes.
    accessories:
        The accessory cache, keyed by accessory UUID.
    """

    def __init__(
        self,
        engine: GroupPropagationEngine,
        accessories: Mapping[str, Accessory],
    ) -> None:
        self._engine = engine
        self._accessories = accessories
        self._handlers: Dict[Tuple[Capability, Operation], Handler] = {
            (Capability.POWER, Operation.GET): self._get_value,
            (Capability.VOLUME, Operation.GET): self._get_value,
            (Capability.POWER, Operation.SET): self._set_power,
            (Capability.VOLUME, Operation.SET): self._set_volume,
        }

    def register(
        self,
        capability: Capability,
        operation: Operation,
        handler: Handler,
    ) -> None:
        """Install (or replace) the handler for one table entry."""
        self._handlers[(capability, operation)] = handler

    async def handle(
        self, request: CharacteristicRequest
    ) -> CharacteristicResponse:
        """Handle *request*, converting failures into an error response."""
        accessory = self._accessories.get(request.accessory_uuid)
        if accessory is None:
            logger.warning(
                "%s %s for unknown accessory %s",
                request.operation.value.upper(),
                request.capability.value,
                request.accessory_uuid,
            )
            return CharacteristicResponse(
                error=KeyError(request.accessory_uuid)
            )

        handler = self._handlers.get((request.capability, request.operation))
        if handler is None:
            return CharacteristicResponse(
                error=NotImplementedError(
                    f"{request.operation.value} {request.capability.value}"
                )
            )

        try:
            value = await handler(accessory, request)
        except ConfigurationError as exc:
            logger.error("%s", exc)
            return CharacteristicResponse(error=exc)
        except (BridgeError, ValueError) as exc:
            logger.error(
                "%s %s of %s failed: %s",
                request.operation.value.upper(),
                request.capability.value,
                accessory.display_name,
                exc,
            )
            return CharacteristicResponse(error=exc)
        return CharacteristicResponse(value=value)

    # ---- default handlers ----------------------------------------------

    async def _get_value(
        self, accessory: Accessory, request: CharacteristicRequest
    ) -> StateValue:
        value = await self._engine.get_state_value(
            accessory.zone_id, request.capability
        )
        logger.debug(
            "Get %s Characteristic %s -> %s",
            accessory.display_name,
            request.capability.value,
            value,
        )
        return value

    async def _set_power(
        self, accessory: Accessory, request: CharacteristicRequest
    ) -> None:
        if not isinstance(request.value, (bool, int)):
            raise ValueError(f"Invalid power value: {request.value!r}")
        await self._engine.apply_state_change(
            accessory.zone_id, power=bool(request.value)
        )
        logger.debug(
            "Set %s Characteristic On -> %s",
            accessory.display_name,
            bool(request.value),
        )
        return None

    async def _set_volume(
        self, accessory: Accessory, request: CharacteristicRequest
    ) -> None:
        await self._engine.apply_state_change(
            accessory.zone_id, volume=request.value  # type: ignore[arg-type]
        )
        logger.debug(
            "Set %s Characteristic Volume -> %s",
            accessory.display_name,
            request.value,
        )
        return None

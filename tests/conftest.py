"""Shared fixtures: an in-memory stand-in for ``aiohttp.ClientSession``."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

from pyCasaTunesBridge.client import CasaTunesClient

BASE_URI = "http://casatunes.test/api/v1"


class FakeResponse:
    """Minimal async-context-manager response."""

    def __init__(
        self,
        payload: Any = None,
        *,
        status: int = 200,
        raw: Optional[str] = None,
    ) -> None:
        self.status = status
        self._payload = payload
        self._raw = raw

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if self._raw is not None:
            return json.loads(self._raw)
        return self._payload

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


Route = Union[
    FakeResponse,
    BaseException,
    Callable[[Optional[Dict[str, str]]], Union[FakeResponse, BaseException]],
]


class FakeSession:
    """Records every GET and answers from a path → route table."""

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.calls: List[Tuple[str, Optional[Dict[str, str]]]] = []
        self.closed = False

    def add(self, path: str, route: Route) -> None:
        self.routes[BASE_URI + path] = route

    def get(self, url: str, params=None, timeout=None) -> FakeResponse:
        params = dict(params) if params else None
        self.calls.append((url, params))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(status=404)
        if callable(route) and not isinstance(route, FakeResponse):
            route = route(params)
        if isinstance(route, BaseException):
            raise route
        return route

    async def close(self) -> None:
        self.closed = True

    def writes(self) -> List[Tuple[str, Dict[str, str]]]:
        """All calls that carried query parameters."""
        return [(url, params) for url, params in self.calls if params]


def zone_json(
    zone_id: str,
    name: Optional[str] = None,
    *,
    power: bool = False,
    volume: int = 0,
    members: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Build a zone object the way the server reports it."""
    data: Dict[str, Any] = {
        "PersistentZoneID": zone_id,
        "Name": name or zone_id.title(),
        "Power": power,
        "Volume": volume,
        "Shared": "True" if members else "False",
    }
    if members:
        data["ZoneGroupInfo"] = [{"zoneId": m} for m in members]
    return data


SYSTEM_INFO = {
    "AppName": "CasaTunes",
    "CasaTunesVersion": "6.1.2",
    "MatrixInfo": [{"Title": "Matrix: Model7"}],
}


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(session: FakeSession) -> CasaTunesClient:
    return CasaTunesClient(BASE_URI, session=session)

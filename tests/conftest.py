"""Test fixtures for roonctrl tests."""

import asyncio
from collections.abc import Generator
from typing import Any

import pytest
from PySide6.QtCore import QCoreApplication

from roonctrl.core.config import ConfigManager
from roonctrl.core.network import ConnectivityCallback, ConnectivityEvent, NetworkCapabilities


class FakeKeyValueStore:
    """Dict-backed KeyValueStore."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(data or {})

    def get_string(self, key: str) -> str | None:
        return self.data.get(key)

    def set_string(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def contains(self, key: str) -> bool:
        return key in self.data


class FakeConnectivityProvider:
    """ConnectivityProvider with a settable network and manual events."""

    def __init__(self, network: NetworkCapabilities | None = None) -> None:
        self.network = network
        self.callbacks: list[ConnectivityCallback] = []
        self.fail_with: Exception | None = None

    def active_network(self) -> NetworkCapabilities | None:
        if self.fail_with is not None:
            raise self.fail_with
        return self.network

    def register(self, callback: ConnectivityCallback) -> None:
        self.callbacks.append(callback)

    def unregister(self, callback: ConnectivityCallback) -> None:
        self.callbacks.remove(callback)

    def emit(self, event: ConnectivityEvent) -> None:
        for callback in list(self.callbacks):
            callback(event)


ONLINE = NetworkCapabilities(has_internet=True, validated=True)
UNVALIDATED = NetworkCapabilities(has_internet=True, validated=False)
LOCAL_ONLY = NetworkCapabilities(has_internet=False, validated=False)


def make_zone(
    *output_ids: str,
    state: str = "stopped",
    now_playing: bool = False,
    name: str = "",
) -> dict[str, Any]:
    """Return a raw zone record with the given outputs."""
    zone: dict[str, Any] = {
        "display_name": name,
        "state": state,
        "outputs": [{"output_id": o, "display_name": o.title()} for o in output_ids],
    }
    if now_playing:
        zone["now_playing"] = {"one_line": {"line1": "Track"}}
    return zone


async def drain_loop(iterations: int = 5) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(iterations):
        await asyncio.sleep(0)


@pytest.fixture
def kv_store() -> FakeKeyValueStore:
    """Return an empty dict-backed store."""
    return FakeKeyValueStore()


@pytest.fixture
def provider() -> FakeConnectivityProvider:
    """Return a provider reporting a validated network."""
    return FakeConnectivityProvider(ONLINE)


@pytest.fixture
def config() -> Generator[ConfigManager, None, None]:
    """Return a fresh ConfigManager for each test."""
    # Use unique organization/app to avoid test interference
    config = ConfigManager("RoonCtrlTest", "TestConfig")
    config.clear()
    yield config
    config.clear()


@pytest.fixture(scope="session")
def qapp() -> QCoreApplication:
    """Return a QCoreApplication instance for tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app

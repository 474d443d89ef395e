import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from rollprogress.config import PersistenceConfig  # noqa: E402
from rollprogress.events import EventBus  # noqa: E402
from rollprogress.persistence import PersistenceStore  # noqa: E402


class Recorder:
    """Collects events published on a bus for assertions."""

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self.events = []

    def listen(self, *names: str) -> "Recorder":
        for name in names:
            self.bus.subscribe(name, self.events.append)
        return self

    def names(self):
        return [e.name for e in self.events]

    def payloads(self, name: str):
        return [e.payload for e in self.events if e.name == name]


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def recorder(bus: EventBus) -> Recorder:
    return Recorder(bus)


@pytest.fixture()
def persistence_config(tmp_path: Path) -> PersistenceConfig:
    return PersistenceConfig(save_dir=tmp_path / "saves")


@pytest.fixture()
def store(persistence_config: PersistenceConfig, bus: EventBus) -> PersistenceStore:
    return PersistenceStore(persistence_config, bus)


@pytest.fixture()
def recorder_for():
    """Build a Recorder listening to every event of a service's bus."""

    def build(service) -> Recorder:
        from rollprogress.events import EventType

        names = [v for k, v in vars(EventType).items() if k.isupper()]
        return Recorder(service.bus).listen(*names)

    return build

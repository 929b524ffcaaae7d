from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import pytest

from softbake.config import BuilderConfig
from softbake.state import BuildState


@dataclass
class FakeClient:
    """In-memory stand-in for SoftLayerClient.

    ``ready_after`` / ``captured_after`` count polls before the instance is
    ready and the capture transaction finishes.
    """

    ready_after: int = 0
    captured_after: int = 0
    instance_ip: str = "10.0.0.5"
    images: list[dict[str, Any]] = field(default_factory=list)
    calls: list[tuple[str, Any]] = field(default_factory=list)
    closed: bool = False
    _ready_polls: int = 0
    _capture_polls: int = 0

    def create_ssh_key(self, label: str, public_key: str) -> dict[str, Any]:
        self.calls.append(("create_ssh_key", label))
        return {"id": 42, "label": label, "key": public_key}

    def delete_ssh_key(self, key_id: int) -> None:
        self.calls.append(("delete_ssh_key", key_id))

    def create_instance(self, template: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("create_instance", template))
        return {"id": 1001, "hostname": template["hostname"]}

    def is_instance_ready(self, instance_id: int) -> bool:
        self._ready_polls += 1
        return self._ready_polls > self.ready_after

    def get_instance_ip(self, instance_id: int) -> str:
        return self.instance_ip

    def has_active_transactions(self, instance_id: int) -> bool:
        self._capture_polls += 1
        return self._capture_polls <= self.captured_after

    def capture_image(self, instance_id: int, name: str, description: str, image_type: str) -> None:
        self.calls.append(("capture_image", (instance_id, name, image_type)))
        self.images.append({"id": 7, "name": name, "globalIdentifier": "abc-123"})

    def find_image(self, *, name: str | None = None, global_id: str | None = None) -> dict[str, Any] | None:
        for image in self.images:
            if name is not None and image["name"] != name:
                continue
            if global_id is not None and image["globalIdentifier"] != global_id:
                continue
            return image
        return None

    def delete_instance(self, instance_id: int) -> None:
        self.calls.append(("delete_instance", instance_id))

    def delete_image(self, global_id: str) -> None:
        self.calls.append(("delete_image", global_id))

    def close(self) -> None:
        self.closed = True

    def called(self, name: str) -> list[Any]:
        return [arg for call, arg in self.calls if call == name]


class RecordingUi:
    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []

    def say(self, message: str) -> None:
        self.lines.append(("say", message))

    def message(self, message: str) -> None:
        self.lines.append(("message", message))

    def error(self, message: str) -> None:
        self.lines.append(("error", message))


@pytest.fixture
def config() -> BuilderConfig:
    return BuilderConfig(
        username="u",
        api_key="k",
        datacenter_name="ams01",
        image_name="img1",
        image_description="test image",
        image_type="flex",
        base_os_code="UBUNTU_LATEST",
        instance_name="softbake-test",
        instance_domain="example.com",
        instance_cpu=1,
        instance_memory=1024,
        instance_network_speed=10,
        instance_disk_capacity=25,
        ssh_port=22,
        ssh_username="root",
        raw_ssh_timeout="5m",
        raw_state_timeout="10m",
        ssh_timeout=timedelta(minutes=5),
        state_timeout=timedelta(minutes=10),
    )


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def ui() -> RecordingUi:
    return RecordingUi()


@pytest.fixture
def state(config: BuilderConfig, client: FakeClient, ui: RecordingUi) -> BuildState:
    return BuildState(config=config, client=client, ui=ui)  # type: ignore[arg-type]

"""The image produced by a successful build."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from softbake.softlayer.client import SoftLayerClient

BUILDER_ID = "softbake.softlayer"


@dataclass(frozen=True, slots=True)
class Artifact:
    """A SoftLayer image template created by the build."""

    image_name: str
    image_id: str
    datacenter_name: str
    client: SoftLayerClient = field(repr=False, compare=False)

    @property
    def builder_id(self) -> str:
        return BUILDER_ID

    @property
    def id(self) -> str:
        return f"{self.datacenter_name}::{self.image_id}"

    def files(self) -> list[str]:
        return []

    def __str__(self) -> str:
        return (
            f"A disk image was created: {self.image_name} "
            f"(id: {self.image_id}) in {self.datacenter_name}"
        )

    def destroy(self) -> None:
        logger.info(f"Destroying image: {self.image_id}")
        self.client.delete_image(self.image_id)

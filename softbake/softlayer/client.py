"""HTTP client for the SoftLayer REST API.

Uses httpx with basic auth (username + API key). Returns decoded JSON
dicts directly; callers pick the fields they need.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from softbake.core.exceptions import SoftLayerError

SOFTLAYER_API_BASE = "https://api.softlayer.com/rest/v3.1"

_GUEST = "SoftLayer_Virtual_Guest"
_SSH_KEY = "SoftLayer_Security_Ssh_Key"
_TEMPLATE_GROUP = "SoftLayer_Virtual_Guest_Block_Device_Template_Group"

_INSTANCE_MASK = "mask[id,globalIdentifier,primaryIpAddress,activeTransactionCount,powerState[keyName]]"
_IMAGE_MASK = "mask[id,globalIdentifier,name]"

# Device "1" is the swap disk; it is never part of a captured image.
_SWAP_DEVICE = "1"


class SoftLayerClient:
    """Synchronous SoftLayer API client shared by all build steps.

    Example:
        with SoftLayerClient("user", "key") as client:
            instance = client.create_instance(template)
            client.get_instance(instance["id"])
    """

    def __init__(
        self,
        username: str,
        api_key: str,
        *,
        base_url: str = SOFTLAYER_API_BASE,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.username = username
        self._client = httpx.Client(
            base_url=base_url,
            auth=(username, api_key),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def __enter__(self) -> SoftLayerClient:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        return f"SoftLayerClient(username={self.username!r})"

    def _request(
        self,
        method: str,
        path: str,
        *,
        parameters: list[Any] | None = None,
        mask: str | None = None,
        object_filter: dict[str, Any] | None = None,
    ) -> Any:
        """Execute a request and return the decoded JSON body."""
        params: dict[str, str] = {}
        if mask:
            params["objectMask"] = mask
        if object_filter:
            params["objectFilter"] = json.dumps(object_filter)
        body = {"parameters": parameters} if parameters is not None else None

        logger.debug(f"SoftLayer {method} {path}")
        try:
            resp = self._client.request(method, path, params=params or None, json=body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SoftLayerError(_error_message(e.response), status=e.response.status_code) from e
        except httpx.RequestError as e:
            raise SoftLayerError(f"Request failed: {e}") from e
        return resp.json() if resp.content else None

    # =========================================================================
    # SSH Keys
    # =========================================================================

    def create_ssh_key(self, label: str, public_key: str) -> dict[str, Any]:
        """Register a public key and return the created key object."""
        return self._request(
            "POST",
            f"/{_SSH_KEY}/createObject.json",
            parameters=[{"label": label, "key": public_key}],
        )

    def delete_ssh_key(self, key_id: int) -> None:
        self._request("DELETE", f"/{_SSH_KEY}/{key_id}.json")

    # =========================================================================
    # Instances
    # =========================================================================

    def create_instance(self, template: dict[str, Any]) -> dict[str, Any]:
        """Order a virtual guest from *template* and return the new guest."""
        return self._request("POST", f"/{_GUEST}/createObject.json", parameters=[template])

    def get_instance(self, instance_id: int) -> dict[str, Any]:
        return self._request("GET", f"/{_GUEST}/{instance_id}/getObject.json", mask=_INSTANCE_MASK)

    def is_instance_ready(self, instance_id: int) -> bool:
        """Powered on, no pending transactions and a public address assigned."""
        data = self.get_instance(instance_id)
        power = (data.get("powerState") or {}).get("keyName")
        return (
            power == "RUNNING"
            and not data.get("activeTransactionCount")
            and bool(data.get("primaryIpAddress"))
        )

    def get_instance_ip(self, instance_id: int) -> str:
        return self.get_instance(instance_id).get("primaryIpAddress") or ""

    def has_active_transactions(self, instance_id: int) -> bool:
        return bool(self.get_instance(instance_id).get("activeTransactionCount"))

    def delete_instance(self, instance_id: int) -> None:
        self._request("DELETE", f"/{_GUEST}/{instance_id}.json")

    # =========================================================================
    # Images
    # =========================================================================

    def capture_image(
        self,
        instance_id: int,
        name: str,
        description: str,
        image_type: str,
    ) -> None:
        """Start an image capture transaction on the instance.

        Flex images go through captureImage; standard images are archived
        from the guest's non-swap block devices.
        """
        if image_type == "flex":
            self._request(
                "POST",
                f"/{_GUEST}/{instance_id}/captureImage.json",
                parameters=[{"name": name, "description": description, "summary": description}],
            )
            return

        devices = self._request(
            "GET",
            f"/{_GUEST}/{instance_id}/getBlockDevices.json",
            mask="mask[id,device]",
        )
        block_devices = [
            {"id": d["id"], "complexType": "SoftLayer_Virtual_Guest_Block_Device"}
            for d in devices or []
            if str(d.get("device")) != _SWAP_DEVICE
        ]
        self._request(
            "POST",
            f"/{_GUEST}/{instance_id}/createArchiveTransaction.json",
            parameters=[name, block_devices, description],
        )

    def find_image(self, *, name: str | None = None, global_id: str | None = None) -> dict[str, Any] | None:
        """Look up an image template by name or global identifier."""
        conditions: dict[str, Any] = {}
        if name is not None:
            conditions["name"] = {"operation": name}
        if global_id is not None:
            conditions["globalIdentifier"] = {"operation": global_id}
        images = self._request(
            "GET",
            "/SoftLayer_Account/getBlockDeviceTemplateGroups.json",
            mask=_IMAGE_MASK,
            object_filter={"blockDeviceTemplateGroups": conditions},
        )
        return images[0] if images else None

    def delete_image(self, global_id: str) -> None:
        image = self.find_image(global_id=global_id)
        if image is None:
            raise SoftLayerError(f"Image {global_id} not found")
        self._request("DELETE", f"/{_TEMPLATE_GROUP}/{image['id']}.json")


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and "error" in data:
        return str(data["error"])
    return response.text

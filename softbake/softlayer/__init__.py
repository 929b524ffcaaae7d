"""SoftLayer API access for softbake."""

from softbake.softlayer.client import SOFTLAYER_API_BASE, SoftLayerClient

__all__ = ["SOFTLAYER_API_BASE", "SoftLayerClient"]

"""Shared provider clients and caches, built once per server process."""

from typing import Any

from .config import Settings
from .core.cache import ReadThroughCache
from .providers.blockade import BlockadeClient
from .providers.fal import FalClient
from .providers.metering import CreditMeter
from .providers.storage import AssetStorage


class Services:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.fal = FalClient(settings)
        self.blockade = BlockadeClient(settings)
        self.storage = AssetStorage(settings)
        self.meter = CreditMeter(settings)
        self.skybox_styles: ReadThroughCache[list[dict[str, Any]]] = ReadThroughCache(
            "skybox styles", self.blockade.list_styles
        )

"""Process-wide settings, loaded once from the environment and `.env`."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

# Generation calls can sit in a provider queue for minutes; discovery calls cannot.
GENERATION_TIMEOUT_S = 600.0
DISCOVERY_TIMEOUT_S = 30.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Providers
    fal_key: Optional[str] = Field(default=None, description="fal.ai API key")
    fal_queue_url: str = "https://queue.fal.run"
    fal_direct_url: str = "https://fal.run"
    fal_catalog_url: str = "https://fal.ai/api"
    blockade_labs_api_key: Optional[str] = Field(default=None, description="Blockade Labs API key")
    blockade_labs_api_url: str = "https://backend.blockadelabs.com/api/v1"

    # Owned storage
    storage_api_url: str = "https://storage.asset-forge.dev"
    storage_public_url: str = "https://assets.asset-forge.dev"
    storage_verse: str = "asset-forge-generated"
    storage_signature: Optional[str] = None

    # Metering and auth; both optional, absence disables them
    metering_api_url: Optional[str] = None
    metering_api_key: Optional[str] = None
    auth_api_url: Optional[str] = None
    auth_required: bool = False

    # Tool groups
    enable_all_tools: bool = True
    enable_image_tools: bool = True
    enable_audio_tools: bool = True
    enable_cinematic_tools: bool = True
    enable_skybox_tools: bool = True

    # Transport and logging
    asset_forge_transport: Literal["stdio", "streamable-http"] = "stdio"
    asset_forge_host: str = "127.0.0.1"
    asset_forge_port: int = Field(default=3000, gt=0, le=65535)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    generation_timeout_s: float = Field(default=GENERATION_TIMEOUT_S, gt=0)
    discovery_timeout_s: float = Field(default=DISCOVERY_TIMEOUT_S, gt=0)

    def group_enabled(self, group: str) -> bool:
        return self.enable_all_tools and bool(getattr(self, f"enable_{group}_tools", True))

    def require_fal_key(self) -> str:
        if not self.fal_key:
            raise ConfigurationError("FAL_KEY environment variable is not set")
        return self.fal_key

    def require_blockade_key(self) -> str:
        if not self.blockade_labs_api_key:
            raise ConfigurationError("BLOCKADE_LABS_API_KEY environment variable is not set")
        return self.blockade_labs_api_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

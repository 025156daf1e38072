"""Owned storage: download provider artifacts and re-upload them.

Uploaded files land at a deterministic public URL:
`{public}/{verse}/{path}/{file}`.
"""

import base64
import binascii
import logging
import re
import uuid
from typing import Optional, Union

import httpx

from ..config import Settings
from ..errors import StorageUploadError

logger = logging.getLogger(__name__)

DATA_URL = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)

_EXTENSIONS = (
    ("image/jpeg", ".jpg"),
    ("image/jpg", ".jpg"),
    ("image/png", ".png"),
    ("image/gif", ".gif"),
    ("video/mp4", ".mp4"),
    ("video/webm", ".webm"),
    ("audio/ogg", ".ogg"),
    ("audio/wav", ".wav"),
    ("audio/x-wav", ".wav"),
    ("audio/wave", ".wav"),
)
_URL_EXTENSION = re.compile(r"\.(jpe?g|png|gif|mp4|webm|mov|ogg|wav)$", re.IGNORECASE)

_PATHS = {
    "cinematic": "cinematics",
    "audio": "audio",
    "skybox": "skyboxes",
}


def storage_path(asset_type: str) -> str:
    asset_type = asset_type.lower()
    for key, path in _PATHS.items():
        if key in asset_type:
            return path
    return "static-assets"


class AssetStorage:
    def __init__(self, settings: Settings):
        self.settings = settings

    @staticmethod
    def extension_for(content_type: Optional[str], url: str = "") -> str:
        """File extension from the content type, then the URL, default .png."""
        if content_type:
            for prefix, ext in _EXTENSIONS:
                if prefix in content_type:
                    return ext
        match = _URL_EXTENSION.search(url.split("?", 1)[0])
        if match:
            ext = match.group(1).lower()
            return ".jpg" if ext == "jpeg" else f".{ext}"
        return ".png"

    def public_url(self, path: str, file_name: str) -> str:
        return f"{self.settings.storage_public_url}/{self.settings.storage_verse}/{path}/{file_name}"

    async def download(self, url: str) -> tuple[bytes, str]:
        """Fetch an artifact. Returns the bytes and their content type."""
        match = DATA_URL.match(url)
        if match:
            try:
                return base64.b64decode(match.group(2), validate=True), match.group(1)
            except binascii.Error as exc:
                logger.error("Malformed data URL for %s asset: %s", match.group(1), exc)
                raise StorageUploadError(f"Malformed data URL: {exc}") from exc
        try:
            async with httpx.AsyncClient(timeout=self.settings.generation_timeout_s, follow_redirects=True) as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Failed to download asset %s: %s", url, exc)
            raise StorageUploadError(f"Failed to download asset: {exc}") from exc
        return resp.content, resp.headers.get("content-type", "application/octet-stream")

    async def upload(self, data: bytes, content_type: str, asset_type: str, file_name: Optional[str] = None) -> str:
        if not file_name:
            file_name = f"{asset_type}-{uuid.uuid4().hex[:16]}{self.extension_for(content_type)}"
        path = storage_path(asset_type)
        verse = self.settings.storage_verse
        url = f"{self.settings.storage_api_url}/verses/{verse}/files"
        headers = {}
        if self.settings.storage_signature:
            headers["X-Signature"] = self.settings.storage_signature

        try:
            async with httpx.AsyncClient(timeout=self.settings.generation_timeout_s) as client:
                resp = await client.post(
                    url,
                    files={"file": (file_name, data, content_type or "application/octet-stream")},
                    data={"path": path},
                    headers=headers,
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = f"Upload failed: {exc.response.status_code} {exc.response.text[:200]}"
            logger.error(message)
            raise StorageUploadError(message) from exc
        except httpx.HTTPError as exc:
            logger.error("Upload error: %s", exc)
            raise StorageUploadError(f"Upload error: {exc}") from exc

        public = self.public_url(path, file_name)
        logger.info("Asset successfully uploaded to server: %s", public)
        return public

    async def upload_asset(
        self,
        source: Union[str, bytes],
        asset_type: str,
        file_name: Optional[str] = None,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload from an http(s) URL, a base64 data URL or raw bytes."""
        if not source:
            raise StorageUploadError("Missing required asset URL")
        if isinstance(source, bytes):
            return await self.upload(source, content_type, asset_type, file_name)
        data, content_type = await self.download(source)
        return await self.upload(data, content_type, asset_type, file_name)

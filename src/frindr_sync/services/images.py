"""Image upload service for meal photos."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from frindr_sync.adapters.api_client import ApiClient, Endpoint, HttpMethod
from frindr_sync.adapters.image_compression import compress_jpeg


@dataclass(frozen=True)
class ImageUploadResult:
    """Remote reference of an uploaded image."""

    url: str
    key: str


@dataclass
class ImageService:
    """Compresses photos and uploads them to remote storage."""

    api_client: ApiClient
    compress: Callable[[bytes, int], bytes] = compress_jpeg
    max_size_kb: int = 500

    async def upload_image(self, data: bytes, entity_id: UUID) -> ImageUploadResult:
        """Compress and upload image bytes named after the owning entity."""
        compressed = await asyncio.to_thread(self.compress, data, self.max_size_kb)
        response = await self.api_client.upload_image(
            compressed, filename=f"{entity_id}.jpg"
        )
        return ImageUploadResult(url=response.url, key=response.key)

    async def delete_image(self, key: str) -> None:
        """Delete a previously uploaded image."""
        await self.api_client.request_no_content(
            Endpoint.image(key), HttpMethod.DELETE
        )

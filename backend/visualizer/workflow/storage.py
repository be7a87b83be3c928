"""Artifact store and visualization records on Supabase.

Image writes degrade: any storage failure, a missing store included, yields an
inline data reference instead of raising. Record writes do not degrade.
"""

import asyncio
import logging
import secrets
import string
import time

from .. import db
from ..models.pipeline import DurableReference, InlineReference, StoredReference
from ..tools.images import extension_for

logger = logging.getLogger(__name__)

_KEY_ALPHABET = string.ascii_lowercase + string.digits


def _rand(n: int = 6) -> str:
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(n))


def original_key(mime_type: str) -> str:
    return f"original/{int(time.time() * 1000)}-{_rand()}.{extension_for(mime_type)}"


def generated_key(index: int, mime_type: str) -> str:
    return f"generated/{int(time.time() * 1000)}-{index}-{_rand()}.{extension_for(mime_type)}"


class SupabaseArtifactStore:
    """Keyed blob storage in a public Supabase bucket."""

    def __init__(self, bucket: str, upload=db.upload_to_storage):
        self.bucket = bucket
        self._upload = upload

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        return await asyncio.to_thread(self._upload, self.bucket, key, data, content_type)


async def persist_image(
    store: SupabaseArtifactStore | None,
    key: str,
    data: bytes,
    mime_type: str,
    *,
    label: str,
) -> StoredReference:
    """Store an image durably, or fall back to an inline data reference."""
    if store is None:
        logger.warning("Storage[%s]: no artifact store configured, using inline data", label)
        return InlineReference(data=data, mime_type=mime_type)
    try:
        url = await store.put(key, data, mime_type)
    except Exception as e:
        logger.warning("Storage[%s]: upload failed, using inline data: %s", label, e)
        return InlineReference(data=data, mime_type=mime_type)
    return DurableReference(public_url=url)


class VisualizationRepository:
    """Async facade over the blocking db helpers."""

    def __init__(self, client=db):
        self._db = client

    async def insert(self, row: dict) -> dict:
        return await asyncio.to_thread(self._db.insert_visualization, row)

    async def get(self, visualization_id: str) -> dict | None:
        return await asyncio.to_thread(self._db.get_visualization, visualization_id)

    async def update(self, visualization_id: str, updates: dict) -> dict | None:
        return await asyncio.to_thread(self._db.update_visualization, visualization_id, updates)

    async def insert_metrics(self, row: dict) -> dict:
        return await asyncio.to_thread(self._db.insert_metrics, row)

    async def list_metrics(self, since_iso: str) -> list[dict]:
        return await asyncio.to_thread(self._db.list_metrics, since_iso)

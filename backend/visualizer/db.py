"""Supabase client and helpers for visualizations, metrics and image storage."""

from datetime import UTC, datetime

from supabase import Client, create_client

from .config import SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL

_client: Client | None = None


def get_client() -> Client:
    global _client
    if _client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise RuntimeError("Supabase is not configured")
        _client = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
    return _client


# ---------------------------------------------------------------------------
# visualizations
# ---------------------------------------------------------------------------

def insert_visualization(row: dict) -> dict:
    return get_client().table("visualizations").insert(row).execute().data[0]


def get_visualization(visualization_id: str) -> dict | None:
    rows = (
        get_client()
        .table("visualizations")
        .select("*")
        .eq("id", visualization_id)
        .execute()
        .data
    )
    return rows[0] if rows else None


def update_visualization(visualization_id: str, updates: dict) -> dict | None:
    updates["updated_at"] = datetime.now(UTC).isoformat()
    rows = (
        get_client()
        .table("visualizations")
        .update(updates)
        .eq("id", visualization_id)
        .execute()
        .data
    )
    return rows[0] if rows else None


# ---------------------------------------------------------------------------
# visualization_metrics
# ---------------------------------------------------------------------------

def insert_metrics(row: dict) -> dict:
    return get_client().table("visualization_metrics").insert(row).execute().data[0]


def list_metrics(since_iso: str) -> list[dict]:
    return (
        get_client()
        .table("visualization_metrics")
        .select("*")
        .gte("created_at", since_iso)
        .order("created_at", desc=True)
        .execute()
        .data
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def upload_to_storage(bucket: str, path: str, data: bytes, content_type: str = "image/png") -> str:
    client = get_client()
    client.storage.from_(bucket).upload(
        path, data, file_options={"content-type": content_type, "upsert": "false"},
    )
    return client.storage.from_(bucket).get_public_url(path)

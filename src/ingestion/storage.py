"""Supabase storage helpers for source documents and embedding chunks."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

from supabase import Client, create_client

from src.config import settings
from src.ingestion.models import CompanySource, RepProfile, SourceDocument, TranscriptSource
from src.pipeline_config import SourceType

if TYPE_CHECKING:
    from src.ingestion.models import Chunk

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
TRANSCRIPTS_TABLE = "transcripts"
COMPANIES_TABLE = "external_org"
EMBEDDINGS_TABLE = "workspace_embeddings"

REPLACE_CHUNKS_FUNCTION = "replace_source_chunks"
PAGE_SIZE = 1000

TRANSCRIPT_COLUMNS = (
    "id, user_id, title, ai_overall_score, ai_summary, ai_what_worked, "
    "ai_improvement_areas, ai_deal_signal, ai_deal_risk_alerts, duration, "
    "participants, created_at, sentences"
)


class SourceNotFoundError(LookupError):
    """The document referenced by a queue item or ingest request does not exist."""

    def __init__(self, source_type: SourceType | str, source_id: str) -> None:
        self.source_type = SourceType(source_type)
        self.source_id = source_id
        super().__init__(f"{self.source_type.value.capitalize()} {source_id} not found")


def get_supabase_client() -> Client:
    """Create and return a Supabase client from settings."""
    return create_client(settings.supabase_url, settings.supabase_key)


def _rows(result: Any) -> list[dict[str, Any]]:
    # Supabase .data is typed as JSON (broad union); cast to concrete type.
    return cast(list[dict[str, Any]], result.data or [])


def fetch_all(
    make_query: Callable[[], Any],
    page_size: int = PAGE_SIZE,
) -> list[dict[str, Any]]:
    """Page through a select query with ``range`` until it runs dry.

    PostgREST caps a single response, so large scans must be paged.
    *make_query* builds a fresh, ordered builder per page since builders
    accumulate parameters.
    """
    rows: list[dict[str, Any]] = []
    offset = 0
    while True:
        page = _rows(make_query().range(offset, offset + page_size - 1).execute())
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += page_size


# ---------------------------------------------------------------------------
# Source documents
# ---------------------------------------------------------------------------


def fetch_transcript(client: Client, transcript_id: str) -> TranscriptSource:
    result = (
        client.table(TRANSCRIPTS_TABLE)
        .select(TRANSCRIPT_COLUMNS)
        .eq("id", transcript_id)
        .limit(1)
        .execute()
    )
    rows = _rows(result)
    if not rows:
        raise SourceNotFoundError(SourceType.TRANSCRIPT, transcript_id)
    return TranscriptSource.from_row(rows[0])


def fetch_company(client: Client, company_id: str, user_id: str) -> CompanySource:
    result = client.table(COMPANIES_TABLE).select("*").eq("id", company_id).limit(1).execute()
    rows = _rows(result)
    if not rows:
        raise SourceNotFoundError(SourceType.COMPANY, company_id)
    return CompanySource.from_row(rows[0], user_id=user_id)


def fetch_source(
    client: Client,
    source_type: SourceType | str,
    source_id: str,
    user_id: str,
) -> SourceDocument:
    """Load the document a queue item points at."""
    if SourceType(source_type) is SourceType.TRANSCRIPT:
        return fetch_transcript(client, source_id)
    return fetch_company(client, source_id, user_id)


def fetch_rep_profile(client: Client, user_id: str) -> RepProfile:
    """Account name, email and company of *user_id*; blanks when unknown."""
    rows = _rows(client.table(USERS_TABLE).select("*").eq("id", user_id).limit(1).execute())
    if not rows:
        logger.warning("No user row for %s; speaker identification falls back", user_id)
        return RepProfile()

    row = rows[0]
    profile = row.get("business_profile") or {}
    if isinstance(profile, str):
        try:
            profile = json.loads(profile)
        except json.JSONDecodeError:
            profile = {}
    company = row.get("company_name") or (profile.get("company_name") if isinstance(profile, dict) else "")
    return RepProfile(
        name=row.get("full_name") or "",
        email=row.get("email") or "",
        company=company or "",
    )


def list_user_ids(client: Client) -> list[str]:
    rows = fetch_all(lambda: client.table(USERS_TABLE).select("id").order("id"))
    return [str(r["id"]) for r in rows if r.get("id") is not None]


def list_transcript_ids(client: Client, user_id: str, eligible_only: bool = True) -> list[str]:
    """Transcript ids owned by *user_id*.

    With *eligible_only*, restrict to transcripts that have been scored
    (``ai_summary`` populated).
    """
    def make_query() -> Any:
        query = client.table(TRANSCRIPTS_TABLE).select("id").eq("user_id", user_id)
        if eligible_only:
            query = query.not_.is_("ai_summary", "null")
        return query.order("id")

    return [str(r["id"]) for r in fetch_all(make_query)]


def count_transcripts(client: Client, user_id: str) -> int:
    result = (
        client.table(TRANSCRIPTS_TABLE)
        .select("id", count="exact", head=True)
        .eq("user_id", user_id)
        .execute()
    )
    return result.count or 0


# ---------------------------------------------------------------------------
# Embedding chunks
# ---------------------------------------------------------------------------


def list_indexed_source_ids(
    client: Client,
    user_id: str,
    source_type: SourceType = SourceType.TRANSCRIPT,
) -> set[str]:
    rows = fetch_all(
        lambda: client.table(EMBEDDINGS_TABLE)
        .select("source_id")
        .eq("user_id", user_id)
        .eq("source_type", source_type.value)
        .order("source_id")
    )
    return {str(r["source_id"]) for r in rows}


def chunk_rows(
    source: SourceDocument,
    chunks_with_embeddings: list[tuple[Chunk, list[float]]],
) -> list[dict[str, Any]]:
    """``workspace_embeddings`` rows for *source*, one per chunk."""
    return [
        {
            "user_id": source.user_id,
            "source_type": source.kind.value,
            "source_id": source.id,
            "chunk_index": chunk.chunk_index,
            "content": chunk.content,
            "embedding": embedding,
            "metadata": chunk.metadata,
        }
        for chunk, embedding in chunks_with_embeddings
    ]


def replace_source_chunks(
    client: Client,
    source: SourceDocument,
    chunks_with_embeddings: list[tuple[Chunk, list[float]]],
) -> None:
    """Swap the stored chunk set of *source* for a new one.

    Delete and insert run inside the ``replace_source_chunks`` database
    function, so either the whole new set is stored or the old one is kept.
    """
    client.rpc(
        REPLACE_CHUNKS_FUNCTION,
        {
            "p_source_type": source.kind.value,
            "p_source_id": source.id,
            "p_rows": chunk_rows(source, chunks_with_embeddings),
        },
    ).execute()
    logger.debug(
        "Replaced chunks of %s %s with %d",
        source.kind.value,
        source.id,
        len(chunks_with_embeddings),
    )

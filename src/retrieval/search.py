"""Semantic search over a user's workspace embeddings."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, cast

from supabase import Client

from src.config import settings
from src.ingestion.embeddings import embed_query
from src.ingestion.storage import get_supabase_client
from src.pipeline_config import SourceType

NO_CONTEXT_MESSAGE = "No relevant context found in your workspace."

SEARCH_FUNCTION = "search_workspace_embeddings"


class SearchValidationError(ValueError):
    """The search request itself is unusable (empty query, bad limit, ...)."""


@dataclass
class SearchResult:
    id: int | str
    source_type: str
    source_id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> SearchResult:
        return cls(
            id=row["id"],
            source_type=row["source_type"],
            source_id=str(row["source_id"]),
            content=row["content"],
            similarity=float(row["similarity"]),
            metadata=row.get("metadata") or {},
        )


def _validate(user_id: str, query: str, limit: int) -> None:
    if not query or not query.strip():
        raise SearchValidationError("query is required")
    if not user_id:
        raise SearchValidationError("userId is required")
    if limit <= 0:
        raise SearchValidationError(f"limit must be positive, got {limit}")


def _source_types(values: Iterable[SourceType | str] | None) -> list[SourceType] | None:
    if not values:
        return None
    try:
        return [SourceType(v) for v in values]
    except ValueError as exc:
        raise SearchValidationError(str(exc)) from exc


def semantic_search(
    user_id: str,
    query: str,
    limit: int = 10,
    source_types: Iterable[SourceType | str] | None = None,
    min_similarity: float | None = None,
    client: Client | None = None,
) -> list[SearchResult]:
    """Find the user's stored chunks closest to *query* by cosine similarity.

    Ranking runs in the database (``search_workspace_embeddings``) against
    the pgvector index.

    Args:
        user_id: Owner whose workspace is searched.
        query: Free-text query, embedded once.
        limit: Maximum number of results.
        source_types: Restrict to these source types.
        min_similarity: Drop results below this score; defaults to the
            configured ``min_similarity``.
        client: Supabase client; created from settings when omitted.

    Returns:
        Results sorted by descending similarity, at most *limit* long.
    """
    _validate(user_id, query, limit)
    types = _source_types(source_types)
    threshold = settings.min_similarity if min_similarity is None else min_similarity

    query_embedding = embed_query(query)
    result = (client or get_supabase_client()).rpc(
        SEARCH_FUNCTION,
        {
            "query_embedding": query_embedding,
            "match_user_id": user_id,
            "match_count": limit,
            "min_similarity": threshold,
            "source_types": [t.value for t in types] if types else None,
        },
    ).execute()
    rows = cast(list[dict[str, Any]], result.data or [])
    return [SearchResult.from_row(row) for row in rows]


def format_context(results: list[SearchResult]) -> str:
    """Stitch search hits into one block grouped by source, for prompting."""
    if not results:
        return NO_CONTEXT_MESSAGE

    transcripts: list[str] = []
    companies: list[str] = []
    other: list[str] = []

    for result in results:
        header = f"[Relevance: {result.similarity * 100:.0f}%]"
        if result.source_type == SourceType.TRANSCRIPT.value:
            title = result.metadata.get("title") or f"Transcript #{result.source_id}"
            transcripts.append(f"### {title}\n{header}\n{result.content[:2000]}")
        elif result.source_type == SourceType.COMPANY.value:
            name = result.metadata.get("company_name") or f"Company #{result.source_id}"
            companies.append(f"### {name}\n{header}\n{result.content[:2000]}")
        else:
            other.append(f"{header}\n{result.content[:1000]}")

    parts: list[str] = []
    if transcripts:
        parts.append("## Relevant Call Transcripts\n" + "\n\n---\n\n".join(transcripts))
    if companies:
        parts.append("## Relevant Company Information\n" + "\n\n---\n\n".join(companies))
    if other:
        parts.append("## Other Relevant Context\n" + "\n\n".join(other))
    return "\n\n".join(parts)


def get_relevant_context(
    user_id: str,
    query: str,
    max_chunks: int | None = None,
    min_similarity: float | None = None,
    source_types: Iterable[SourceType | str] | None = None,
    client: Client | None = None,
) -> str:
    """Search and render the hits as a context block for a text-generation step."""
    results = semantic_search(
        user_id,
        query,
        limit=max_chunks or settings.context_max_chunks,
        source_types=source_types,
        min_similarity=settings.context_min_similarity if min_similarity is None else min_similarity,
        client=client,
    )
    return format_context(results)

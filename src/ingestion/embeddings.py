"""Embedding helpers using OpenAI text-embedding-3-small."""

from __future__ import annotations

import logging

from openai import OpenAI

from src.config import settings
from src.ingestion.models import Chunk

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """The provider returned something other than one vector per input."""


def get_openai_client() -> OpenAI:
    return OpenAI(api_key=settings.openai_api_key or None)


def truncate_for_embedding(text: str, limit: int | None = None) -> str:
    """Clip *text* to the provider's input ceiling."""
    return text[: limit or settings.embedding_max_input_chars]


def embed_texts(texts: list[str], model: str | None = None) -> list[list[float]]:
    """Embed a list of texts using a single OpenAI embeddings call.

    Args:
        texts: Strings to embed. Each is truncated to the input ceiling.
        model: OpenAI embedding model name; defaults to the configured model.

    Returns:
        A list of embedding vectors in the same order as *texts*.

    Raises:
        EmbeddingError: If the response does not hold one vector of the
            configured dimension per input.
    """
    if not texts:
        return []

    client = get_openai_client()
    response = client.embeddings.create(
        input=[truncate_for_embedding(t) for t in texts],
        model=model or settings.embedding_model,
    )
    vectors = [item.embedding for item in sorted(response.data, key=lambda item: item.index)]

    if len(vectors) != len(texts):
        msg = f"Expected {len(texts)} embeddings, got {len(vectors)}"
        raise EmbeddingError(msg)
    bad = [len(v) for v in vectors if len(v) != settings.embedding_dimensions]
    if bad:
        msg = f"Expected {settings.embedding_dimensions}-dimension embeddings, got {bad[0]}"
        raise EmbeddingError(msg)

    logger.debug("Embedded %d texts with %s", len(texts), model or settings.embedding_model)
    return vectors


def embed_query(query: str) -> list[float]:
    """Generate an embedding vector for a single query string."""
    return embed_texts([query])[0]


def embed_chunks(chunks: list[Chunk]) -> list[tuple[Chunk, list[float]]]:
    """Embed chunks and return ``(chunk, embedding)`` pairs.

    Args:
        chunks: Chunks whose ``content`` will be embedded.

    Returns:
        List of ``(Chunk, embedding_vector)`` tuples.
    """
    embeddings = embed_texts([c.content for c in chunks])
    return list(zip(chunks, embeddings, strict=True))

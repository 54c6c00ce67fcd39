from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from juxtapose.core.errors import ErrorKind, SyncError
from juxtapose.core.logging import log_event


class Embedder(Protocol):
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        ...


@dataclass(frozen=True)
class EmbeddingResult:
    vectors: list[list[float]] = field(default_factory=list)
    error: SyncError | None = None


def embed_batch(embedder: Embedder, texts: list[str]) -> EmbeddingResult:
    if not texts:
        return EmbeddingResult()

    t0 = time.perf_counter()
    log_event("embeddings_request", payload={"batch_size": len(texts)})
    try:
        vectors = embedder.embed_texts(texts)
    except httpx.HTTPError as exc:
        return EmbeddingResult(error=SyncError(ErrorKind.FETCH, "EMBEDDINGS_FAILED", str(exc), retryable=True))
    except (RuntimeError, KeyError, TypeError, ValueError) as exc:
        return EmbeddingResult(error=SyncError(ErrorKind.FETCH, "EMBEDDINGS_FAILED", str(exc)))

    if len(vectors) != len(texts):
        return EmbeddingResult(
            error=SyncError(
                ErrorKind.FETCH,
                "EMBEDDINGS_COUNT_MISMATCH",
                f"expected {len(texts)} vectors, got {len(vectors)}",
            )
        )

    log_event(
        "embeddings_response",
        payload={"batch_size": len(texts), "duration_ms": int((time.perf_counter() - t0) * 1000)},
    )
    return EmbeddingResult(vectors=vectors)

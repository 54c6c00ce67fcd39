import httpx

from juxtapose.core.errors import ErrorKind
from juxtapose.services.embedding import embed_batch


class RecordingEmbedder:
    def __init__(self, vectors=None, exc=None):
        self.vectors = vectors
        self.exc = exc
        self.calls = []

    def embed_texts(self, texts):
        self.calls.append(list(texts))
        if self.exc is not None:
            raise self.exc
        if self.vectors is not None:
            return self.vectors
        return [[float(i)] for i, _ in enumerate(texts)]


def test_embed_batch_sends_all_texts_in_one_call():
    embedder = RecordingEmbedder()
    result = embed_batch(embedder, ["a", "b", "c"])

    assert result.error is None
    assert result.vectors == [[0.0], [1.0], [2.0]]
    assert embedder.calls == [["a", "b", "c"]]


def test_embed_batch_empty_input_skips_service():
    embedder = RecordingEmbedder()
    result = embed_batch(embedder, [])

    assert result.error is None
    assert result.vectors == []
    assert embedder.calls == []


def test_embed_batch_maps_transport_error_to_retryable_failure():
    result = embed_batch(RecordingEmbedder(exc=httpx.ConnectError("refused")), ["a"])

    assert result.error.error_code == "EMBEDDINGS_FAILED"
    assert result.error.kind is ErrorKind.FETCH
    assert result.error.retryable is True


def test_embed_batch_maps_malformed_response_to_failure():
    result = embed_batch(RecordingEmbedder(exc=RuntimeError("bad payload")), ["a"])

    assert result.error.error_code == "EMBEDDINGS_FAILED"
    assert result.error.retryable is False


def test_embed_batch_rejects_count_mismatch():
    result = embed_batch(RecordingEmbedder(vectors=[[0.1]]), ["a", "b"])

    assert result.error.error_code == "EMBEDDINGS_COUNT_MISMATCH"
    assert result.vectors == []

import pytest

from juxtapose.clients.embeddings_client import EmbeddingsClient


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class FakeHttpxClient:
    def __init__(self, recorder):
        self.recorder = recorder

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def post(self, url, json):
        self.recorder.append((url, json))
        data = [{"index": i, "embedding": [float(len(text)), 0.5]} for i, text in enumerate(json["input"])]
        return FakeResponse({"data": data})


def test_embed_texts_posts_openai_compatible_payload(monkeypatch):
    calls = []

    monkeypatch.setattr("httpx.Client", lambda timeout: FakeHttpxClient(calls))
    client = EmbeddingsClient(base_url="http://emb/", timeout_seconds=5, model_id="embeddinggemma", batch_size=8)
    vectors = client.embed_texts(["a", "bb"])

    assert vectors == [[1.0, 0.5], [2.0, 0.5]]
    assert calls[0][0] == "http://emb/v1/embeddings"
    assert calls[0][1]["model"] == "embeddinggemma"
    assert calls[0][1]["input"] == ["a", "bb"]


def test_embed_texts_splits_into_sub_batches_and_keeps_order(monkeypatch):
    calls = []

    monkeypatch.setattr("httpx.Client", lambda timeout: FakeHttpxClient(calls))
    client = EmbeddingsClient(base_url="http://emb", timeout_seconds=5, model_id="m", batch_size=2)
    vectors = client.embed_texts(["a", "bb", "ccc", "dddd", "eeeee"])

    assert [call[1]["input"] for call in calls] == [["a", "bb"], ["ccc", "dddd"], ["eeeee"]]
    assert [vector[0] for vector in vectors] == [1.0, 2.0, 3.0, 4.0, 5.0]


def test_embed_texts_reorders_by_index(monkeypatch):
    class ShuffledHttpxClient(FakeHttpxClient):
        def post(self, url, json):
            return FakeResponse({"data": [{"index": 1, "embedding": [2.0]}, {"index": 0, "embedding": [1.0]}]})

    monkeypatch.setattr("httpx.Client", lambda timeout: ShuffledHttpxClient([]))
    client = EmbeddingsClient(base_url="http://emb", timeout_seconds=5, model_id="m", batch_size=8)

    assert client.embed_texts(["first", "second"]) == [[1.0], [2.0]]


def test_embed_texts_empty_input_makes_no_call(monkeypatch):
    calls = []

    monkeypatch.setattr("httpx.Client", lambda timeout: FakeHttpxClient(calls))
    client = EmbeddingsClient(base_url="http://emb", timeout_seconds=5, model_id="m", batch_size=8)

    assert client.embed_texts([]) == []
    assert calls == []


def test_embed_texts_negative_count_mismatch(monkeypatch):
    class ShortHttpxClient(FakeHttpxClient):
        def post(self, url, json):
            return FakeResponse({"data": [{"index": 0, "embedding": [0.1]}]})

    monkeypatch.setattr("httpx.Client", lambda timeout: ShortHttpxClient([]))
    client = EmbeddingsClient(base_url="http://emb", timeout_seconds=5, model_id="m", batch_size=8)

    with pytest.raises(RuntimeError):
        client.embed_texts(["x", "y"])


def test_embed_texts_negative_mixed_dimensions(monkeypatch):
    class MixedHttpxClient(FakeHttpxClient):
        def post(self, url, json):
            return FakeResponse({"data": [{"index": 0, "embedding": [0.1]}, {"index": 1, "embedding": [0.1, 0.2]}]})

    monkeypatch.setattr("httpx.Client", lambda timeout: MixedHttpxClient([]))
    client = EmbeddingsClient(base_url="http://emb", timeout_seconds=5, model_id="m", batch_size=8)

    with pytest.raises(RuntimeError):
        client.embed_texts(["x", "y"])

class EmbeddingsClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: int | None = None,
        model_id: str | None = None,
        batch_size: int | None = None,
    ):
        if base_url is None or timeout_seconds is None or model_id is None or batch_size is None:
            from juxtapose.core.config import settings

            base_url = base_url or settings.EMBEDDINGS_SERVICE_URL
            timeout_seconds = timeout_seconds or settings.EMBEDDINGS_TIMEOUT_SECONDS
            model_id = model_id or settings.EMBEDDINGS_MODEL_ID
            batch_size = batch_size or settings.EMBEDDINGS_BATCH_SIZE
        self.base_url = str(base_url).rstrip("/")
        self.timeout_seconds = float(timeout_seconds)
        self.model_id = str(model_id)
        self.batch_size = max(int(batch_size), 1)

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` in order; one vector per input, all of one dimension."""
        if not texts:
            return []
        import httpx

        vectors: list[list[float]] = []
        with httpx.Client(timeout=self.timeout_seconds) as client:
            for start in range(0, len(texts), self.batch_size):
                batch = texts[start : start + self.batch_size]
                response = client.post(
                    f"{self.base_url}/v1/embeddings",
                    json={"model": self.model_id, "input": batch, "encoding_format": "float"},
                )
                response.raise_for_status()
                vectors.extend(self._parse_batch(response.json(), expected=len(batch)))

        dimensions = {len(vector) for vector in vectors}
        if len(dimensions) != 1:
            raise RuntimeError(f"Embeddings service returned mixed dimensions: {sorted(dimensions)}")
        return vectors

    @staticmethod
    def _parse_batch(body: dict, *, expected: int) -> list[list[float]]:
        data = body.get("data") or []
        if len(data) != expected:
            raise RuntimeError(f"Embeddings service returned {len(data)} vectors for {expected} inputs")
        if all(isinstance(item.get("index"), int) for item in data):
            data = sorted(data, key=lambda item: item["index"])
        return [[float(x) for x in item["embedding"]] for item in data]

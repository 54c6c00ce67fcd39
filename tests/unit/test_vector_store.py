import gzip

from botocore.exceptions import ClientError

from juxtapose.schemas.vectors import ItemVector, VectorObject
from juxtapose.services.vector_store import CONTENT_TYPE, VectorObjectStore, object_key


class MemoryBlobs:
    def __init__(self):
        self.objects = {}
        self.content_types = {}
        self.fail_reads = False
        self.fail_writes = False

    def get_bytes(self, key):
        if self.fail_reads:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "GetObject")
        return self.objects.get(key)

    def put_bytes(self, key, payload, content_type="application/octet-stream"):
        if self.fail_writes:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "PutObject")
        self.objects[key] = payload
        self.content_types[key] = content_type
        return f"s3://vectors/{key}"

    def delete(self, key):
        if self.fail_writes:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "DeleteObject")
        self.objects.pop(key, None)


def _object():
    return VectorObject(
        repo="acme/widgets",
        synced_at=42,
        issues={"I_1": ItemVector(id="I_1", number=1, state="open", vector=[0.5])},
    )


def test_object_key_layout():
    assert object_key("acme/widgets") == "acme/widgets.json.gz"


def test_save_writes_gzip_json_with_content_type():
    blobs = MemoryBlobs()
    result = VectorObjectStore(blobs).save(_object())

    assert result.error is None
    assert result.uri == "s3://vectors/acme/widgets.json.gz"
    assert blobs.content_types["acme/widgets.json.gz"] == CONTENT_TYPE == "application/gzip"
    assert b'"syncedAt":42' in gzip.decompress(blobs.objects["acme/widgets.json.gz"])
    assert result.size_bytes == len(blobs.objects["acme/widgets.json.gz"])


def test_load_after_save_returns_equal_object():
    store = VectorObjectStore(MemoryBlobs())
    store.save(_object())

    loaded = store.load("acme/widgets")
    assert loaded.error is None
    assert loaded.vector_object == _object()


def test_load_missing_object_is_not_an_error():
    loaded = VectorObjectStore(MemoryBlobs()).load("acme/widgets")
    assert loaded.error is None
    assert loaded.vector_object is None


def test_load_corrupt_payload_is_reported():
    blobs = MemoryBlobs()
    blobs.objects["acme/widgets.json.gz"] = b"garbage"
    assert VectorObjectStore(blobs).load("acme/widgets").error.error_code == "ARTIFACT_CORRUPT"

    blobs.objects["acme/widgets.json.gz"] = gzip.compress(b'{"repo": 1}')
    assert VectorObjectStore(blobs).load("acme/widgets").error.error_code == "ARTIFACT_CORRUPT"


def test_load_rejects_object_of_another_repository():
    blobs = MemoryBlobs()
    store = VectorObjectStore(blobs)
    store.save(_object())
    blobs.objects["acme/gadgets.json.gz"] = blobs.objects["acme/widgets.json.gz"]

    assert store.load("acme/gadgets").error.error_code == "ARTIFACT_CORRUPT"


def test_storage_failures_are_mapped():
    blobs = MemoryBlobs()
    store = VectorObjectStore(blobs)
    blobs.fail_reads = True
    blobs.fail_writes = True

    assert store.load("acme/widgets").error.error_code == "STORAGE_READ_FAILED"
    assert store.save(_object()).error.error_code == "STORAGE_WRITE_FAILED"
    assert store.delete("acme/widgets").error_code == "STORAGE_WRITE_FAILED"

import builtins

import pytest
from botocore.exceptions import ClientError

from juxtapose.services.storage import ObjectStorage, StorageConfig


class FakeBody:
    def __init__(self, payload: bytes):
        self.payload = payload

    def read(self):
        return self.payload


class FakeS3Client:
    def __init__(self):
        self.objects = {}
        self.content_types = {}

    def put_object(self, Bucket, Key, Body, ContentType=None):
        self.objects[(Bucket, Key)] = Body
        self.content_types[(Bucket, Key)] = ContentType

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": FakeBody(self.objects[(Bucket, Key)])}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeS3Client()

    class FakeBoto3:
        @staticmethod
        def client(*_args, **_kwargs):
            return client

    real_import = builtins.__import__

    def fake_import(name, *args, **kwargs):
        if name == "boto3":
            return FakeBoto3
        return real_import(name, *args, **kwargs)

    monkeypatch.setattr(builtins, "__import__", fake_import)
    return client


def _storage():
    return ObjectStorage(
        StorageConfig(
            endpoint="http://localhost:9000",
            access_key="x",
            secret_key="y",
            region="us-east-1",
            secure=False,
            bucket="vectors",
        )
    )


def test_put_get_bytes_roundtrip(fake_client):
    storage = _storage()
    uri = storage.put_bytes("acme/widgets.json.gz", b"\x1f\x8bdata", content_type="application/gzip")

    assert uri == "s3://vectors/acme/widgets.json.gz"
    assert storage.get_bytes("acme/widgets.json.gz") == b"\x1f\x8bdata"
    assert fake_client.content_types[("vectors", "acme/widgets.json.gz")] == "application/gzip"


def test_get_missing_key_returns_none(fake_client):
    assert _storage().get_bytes("acme/none.json.gz") is None


def test_get_propagates_other_client_errors(fake_client):
    def denied(Bucket, Key):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "GetObject")

    fake_client.get_object = denied
    with pytest.raises(ClientError):
        _storage().get_bytes("acme/widgets.json.gz")


def test_delete_removes_object(fake_client):
    storage = _storage()
    storage.put_bytes("acme/widgets.json.gz", b"x")
    storage.delete("acme/widgets.json.gz")

    assert storage.get_bytes("acme/widgets.json.gz") is None

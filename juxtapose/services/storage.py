from dataclasses import dataclass

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass
class StorageConfig:
    endpoint: str
    access_key: str
    secret_key: str
    region: str
    secure: bool
    bucket: str


class ObjectStorage:
    def __init__(self, config: StorageConfig):
        self.config = config
        self.bucket = config.bucket
        import boto3

        self.client = boto3.client(
            "s3",
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            use_ssl=config.secure,
        )

    def get_bytes(self, key: str) -> bytes | None:
        from botocore.exceptions import ClientError

        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_KEY_CODES:
                return None
            raise
        return response["Body"].read()

    def put_bytes(self, key: str, payload: bytes, content_type: str = "application/octet-stream") -> str:
        self.client.put_object(Bucket=self.bucket, Key=key, Body=payload, ContentType=content_type)
        return f"s3://{self.bucket}/{key}"

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)

from __future__ import annotations
import io
from datetime import timedelta
from functools import lru_cache
from typing import BinaryIO
import structlog
from minio import Minio
from minio.error import S3Error
from gregaplay.config import settings

log = structlog.get_logger()

def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host, secure


class Storage:
    def __init__(self, client: Minio, bucket: str):
        self._client = client
        self.bucket = bucket

    def ensure_bucket(self) -> None:
        try:
            if not self._client.bucket_exists(self.bucket):
                self._client.make_bucket(self.bucket)
        except S3Error as e:
            # Concurrent creation by another worker
            if e.code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise

    def put_stream(self, key: str, stream: BinaryIO, length: int, content_type: str) -> None:
        self._client.put_object(self.bucket, key, stream, length=length, content_type=content_type)

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        self.put_stream(key, io.BytesIO(data), len(data), content_type)

    def get_bytes(self, key: str) -> tuple[bytes, str]:
        """
        Retrieve object from storage.
        Returns (data, content_type).
        """
        response = None
        try:
            response = self._client.get_object(self.bucket, key)
            data = response.read()
            content_type = response.headers.get("Content-Type", "application/octet-stream")
            return data, content_type
        except S3Error as e:
            if e.code == "NoSuchKey":
                raise FileNotFoundError(f"Object not found: {key}")
            raise
        finally:
            if response is not None:
                response.close()
                response.release_conn()

    def remove(self, key: str) -> None:
        self._client.remove_object(self.bucket, key)

    def presign_get(self, key: str) -> str:
        return self._client.presigned_get_object(
            self.bucket, key, expires=timedelta(seconds=settings.s3_presign_expiry_seconds)
        )


@lru_cache(maxsize=1)
def get_storage() -> Storage:
    host, secure = _parse_endpoint(settings.s3_endpoint)
    client = Minio(host, access_key=settings.s3_access_key, secret_key=settings.s3_secret_key, secure=secure)
    storage = Storage(client, settings.s3_bucket_uploads)
    storage.ensure_bucket()
    log.info("storage_ready", bucket=storage.bucket, endpoint=host)
    return storage

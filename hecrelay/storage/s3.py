"""S3 storage backend.

boto3 is synchronous; each upload runs in a worker thread via
``asyncio.to_thread`` so the event loop (and the health probes running on
it) is never blocked.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlparse

import boto3
import structlog
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from hecrelay.errors import ConfigError, StorageError
from hecrelay.models.config import StorageConfig
from hecrelay.models.events import CanonicalEvent
from hecrelay.storage.base import StorageBackend, object_key, serialize_batch

_log = structlog.get_logger(component="storage.s3")


class S3Location:
    """Bucket, key prefix and (for non-AWS hosts) endpoint parsed from a URL.

    Accepted forms::

        s3://bucket/prefix
        https://bucket.s3.ap-southeast-2.amazonaws.com/prefix/
        https://s3.ap-southeast-2.amazonaws.com/bucket/prefix
        https://minio.internal:9000/bucket/prefix
    """

    def __init__(self, bucket: str, prefix: str = "", endpoint_url: str | None = None) -> None:
        if not bucket:
            raise ConfigError("S3 bucket must not be empty")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.endpoint_url = endpoint_url

    @classmethod
    def parse(cls, url: str) -> S3Location:
        parsed = urlparse(url)
        host = parsed.hostname or ""
        path = parsed.path.strip("/")

        if parsed.scheme == "s3":
            return cls(bucket=parsed.netloc, prefix=path)
        if parsed.scheme not in ("http", "https") or not host:
            raise ConfigError(f"Invalid S3 URL: {url!r}")

        if ".s3." in host or ".s3-" in host:
            # Virtual-hosted style: bucket.s3.region.amazonaws.com/prefix
            return cls(bucket=host.split(".", 1)[0], prefix=path)

        bucket, _, prefix = path.partition("/")
        if not bucket:
            raise ConfigError(f"Could not parse bucket name from URL: {url!r}")
        endpoint_url = None
        if not host.endswith("amazonaws.com"):
            endpoint_url = f"{parsed.scheme}://{parsed.netloc}"
        return cls(bucket=bucket, prefix=prefix, endpoint_url=endpoint_url)


class S3Storage(StorageBackend):
    """Writes each batch as one gzip object in an S3 bucket.

    Args:
        location: Parsed bucket / prefix / endpoint.
        client:   Pre-built boto3 S3 client.  Built from *config* when omitted.
        config:   Credentials and region for the default client.
        timeout:  Connect and read timeout in seconds for the default client.
    """

    def __init__(
        self,
        location: S3Location,
        client: Any | None = None,
        config: StorageConfig | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._location = location
        self._client = client or _build_client(location, config or StorageConfig(), timeout)

    @classmethod
    def from_config(cls, config: StorageConfig, timeout: float = 10.0) -> S3Storage:
        return cls(S3Location.parse(config.url), config=config, timeout=timeout)

    @property
    def backend_name(self) -> str:
        return f"s3://{self._location.bucket}/{self._location.prefix}"

    async def store(self, batch: Sequence[CanonicalEvent]) -> None:
        body = serialize_batch(batch)
        key = object_key(self._location.prefix)
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._location.bucket,
                Key=key,
                Body=body,
                ContentType="application/x-ndjson",
                ContentEncoding="gzip",
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload to s3://{self._location.bucket}/{key}: {exc}") from exc

        _log.info(
            "batch_stored",
            bucket=self._location.bucket,
            key=key,
            events=len(batch),
            bytes=len(body),
        )

    async def close(self) -> None:
        close_fn = getattr(self._client, "close", None)
        if close_fn is not None:
            await asyncio.to_thread(close_fn)


def _build_client(location: S3Location, config: StorageConfig, timeout: float) -> Any:
    kwargs: dict[str, Any] = {
        "region_name": config.region,
        "config": BotoConfig(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 2, "mode": "standard"},
        ),
    }
    if location.endpoint_url:
        kwargs["endpoint_url"] = location.endpoint_url
    if config.access_key_id and config.access_key_secret:
        kwargs["aws_access_key_id"] = config.access_key_id
        kwargs["aws_secret_access_key"] = config.access_key_secret
    return boto3.client("s3", **kwargs)

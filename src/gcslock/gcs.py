"""Lease store backed by Google Cloud Storage."""

import asyncio
import threading
from typing import Any

import structlog
from google.api_core.client_info import ClientInfo
from google.api_core.exceptions import NotFound, PreconditionFailed
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage

from gcslock.errors import (
    BucketNotFoundError,
    ObjectNotFoundError,
    PreconditionFailedError,
    StoreClosedError,
    StoreError,
)
from gcslock.store import ReadResult, WriteResult
from gcslock.types import Metadata, Precondition

logger = structlog.get_logger(__name__)

# Lease objects must never be served from a cache
DEFAULT_CACHE_CONTROL = "private, no-cache, no-store, no-transform, max-age=0"


class GCSLeaseStore:
    """
    Lease store on top of ``google.cloud.storage``.

    The storage client is blocking, so every call runs in a worker thread.
    Transport retries of the client are disabled for conditioned uploads:
    a conflicting write is reported back and retried by the lock instead.
    """

    def __init__(
        self,
        client: storage.Client | None = None,
        *,
        project: str | None = None,
        user_agent: str | None = None,
        api_endpoint: str | None = None,
        anonymous: bool = False,
    ) -> None:
        """
        Initialize the store.

        Args:
            client: Existing storage client to use. The store takes ownership
                of it and closes it in close().
            project: Project for a client created by the store
            user_agent: User agent reported to the API
            api_endpoint: Override the API endpoint (e.g. an emulator)
            anonymous: Use anonymous credentials instead of the default ones
        """
        self._client = client
        self._client_kwargs: dict[str, Any] = {"project": project}
        if user_agent:
            self._client_kwargs["client_info"] = ClientInfo(user_agent=user_agent)
        if api_endpoint:
            self._client_kwargs["client_options"] = {"api_endpoint": api_endpoint}
        if anonymous:
            self._client_kwargs["credentials"] = AnonymousCredentials()
        self._client_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _get_client(self) -> storage.Client:
        with self._client_lock:
            if self._client is None:
                self._client = storage.Client(**self._client_kwargs)
            return self._client

    async def read(self, bucket: str, name: str) -> ReadResult:
        if self._closed:
            return ReadResult.failed(StoreClosedError("read", bucket, name, "store is closed"))
        try:
            blob = await asyncio.to_thread(self._get_blob, bucket, name)
        except Exception as exc:  # noqa: BLE001
            return ReadResult.failed(_chained(StoreError("read", bucket, name, str(exc)), exc))

        if blob is None:
            return ReadResult.not_found()
        return ReadResult.found(blob.metadata, int(blob.generation), int(blob.metageneration))

    def _get_blob(self, bucket: str, name: str) -> storage.Blob | None:
        return self._get_client().bucket(bucket).get_blob(name)

    async def write(
        self, bucket: str, name: str, metadata: Metadata, precondition: Precondition
    ) -> WriteResult:
        if self._closed:
            return WriteResult.failed(StoreClosedError("write", bucket, name, "store is closed"))
        try:
            await asyncio.to_thread(self._upload, bucket, name, metadata, precondition)
        except PreconditionFailed as exc:
            return WriteResult.conflict(
                _chained(PreconditionFailedError("write", bucket, name, str(exc)), exc)
            )
        except NotFound as exc:
            return await self._classify_not_found(bucket, name, exc)
        except Exception as exc:  # noqa: BLE001
            return WriteResult.failed(_chained(StoreError("write", bucket, name, str(exc)), exc))
        return WriteResult.success()

    async def _classify_not_found(self, bucket: str, name: str, exc: NotFound) -> WriteResult:
        """
        Tell a concurrently deleted object from a missing bucket.

        Only a lookup that answers "no such bucket" is fatal. When the lookup
        itself fails (e.g. no storage.buckets.get permission) the 404 is
        reported as a conflict, so the lock re-reads and the next round
        decides.
        """
        try:
            bucket_exists = await asyncio.to_thread(self._bucket_exists, bucket)
        except Exception as lookup_exc:  # noqa: BLE001
            logger.debug(
                "bucket_lookup_failed", bucket=bucket, name=name, error=str(lookup_exc)
            )
            bucket_exists = True
        if not bucket_exists:
            return WriteResult.failed(
                _chained(BucketNotFoundError("write", bucket, name, str(exc)), exc)
            )
        return WriteResult.conflict(
            _chained(ObjectNotFoundError("write", bucket, name, str(exc)), exc)
        )

    def _upload(
        self, bucket: str, name: str, metadata: Metadata, precondition: Precondition
    ) -> None:
        blob = self._get_client().bucket(bucket).blob(name)
        blob.metadata = dict(metadata)
        blob.cache_control = DEFAULT_CACHE_CONTROL

        conditions: dict[str, int]
        if precondition.does_not_exist:
            conditions = {"if_generation_match": 0}
        else:
            conditions = {
                "if_generation_match": precondition.generation,
                "if_metageneration_match": precondition.metageneration,
            }

        blob.upload_from_string(
            b"",
            content_type="application/octet-stream",
            checksum="crc32c",
            retry=None,
            **conditions,
        )

    def _bucket_exists(self, bucket: str) -> bool:
        return self._get_client().lookup_bucket(bucket) is not None

    async def close(self) -> None:
        with self._client_lock:
            if self._closed:
                return
            self._closed = True
            client = self._client
        if client is not None:
            await asyncio.to_thread(client.close)
        logger.debug("lease_store_closed", store="gcs")


def _chained(error: StoreError, cause: BaseException) -> StoreError:
    error.__cause__ = cause
    return error

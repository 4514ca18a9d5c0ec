"""S3 object storage adapter."""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import ClientError

from observation_backfill.errors import ObjectNotFoundError
from observation_backfill.storage.base import ListPage

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3ObjectStorage:
    """Read, write and list objects in S3 through boto3.

    Parameters
    ----------
    region:
        AWS region of the bucket.
    endpoint_url:
        Custom endpoint for S3-compatible storage.
    client:
        Pre-built ``boto3`` S3 client.  Built from *region* when omitted.
    """

    def __init__(
        self,
        region: str = "eu-west-2",
        endpoint_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        if client is None:
            kwargs: dict[str, Any] = {"region_name": region}
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)
        self._s3 = client

    def list_objects(self, bucket: str, prefix: str, continuation_token: str | None = None) -> ListPage:
        kwargs: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        response = self._s3.list_objects_v2(**kwargs)
        keys = [obj["Key"] for obj in response.get("Contents", []) if obj.get("Key")]
        return ListPage(keys=keys, next_token=response.get("NextContinuationToken"))

    def get_object(self, bucket: str, key: str) -> bytes:
        try:
            response = self._s3.get_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(bucket, key) from exc
            raise
        body = response.get("Body")
        if body is None:
            return b""
        return body.read()

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str = "application/json") -> None:
        self._s3.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        logger.debug("S3 write: s3://%s/%s (%d bytes)", bucket, key, len(body))

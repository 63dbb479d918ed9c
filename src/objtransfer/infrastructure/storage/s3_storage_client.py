"""S3-compatible storage client: boto3 for control calls, requests for byte streams."""

import logging
from contextlib import contextmanager
from typing import BinaryIO, List, Optional

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from objtransfer.config import TransferConfig
from objtransfer.domain.entities.upload_part import DownloadRange, PartListing, UploadedPart
from objtransfer.domain.errors import NetworkTimeoutError, ServerError, TransferError
from objtransfer.domain.storage.storage_client import ObjectMetadata, ObjectStream, StorageClient
from objtransfer.infrastructure.network.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

PRESIGN_EXPIRES = 3600


@contextmanager
def boto_errors(action: str):
    """Translate botocore failures into transfer errors."""
    try:
        yield
    except ClientError as ex:
        status = ex.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        code = ex.response.get("Error", {}).get("Code", "error")
        raise ServerError(f"{action} failed: {code} (Server code = {status})",
                          status_code=status, cause=ex) from ex
    except (ConnectTimeoutError, ReadTimeoutError) as ex:
        raise NetworkTimeoutError(f"{action} timed out", cause=ex) from ex
    except BotoCoreError as ex:
        raise TransferError(f"{action} failed: {ex}", cause=ex) from ex


@contextmanager
def http_errors(action: str):
    """Translate requests failures into transfer errors."""
    try:
        yield
    except requests.exceptions.Timeout as ex:
        raise NetworkTimeoutError(f"{action} timed out", cause=ex) from ex
    except requests.exceptions.HTTPError as ex:
        status = ex.response.status_code if ex.response is not None else None
        raise ServerError(f"{action} failed (Server code = {status})", status_code=status, cause=ex) from ex
    except requests.exceptions.RequestException as ex:
        raise TransferError(f"{action} failed: {ex}", cause=ex) from ex


class HttpObjectStream(ObjectStream):
    """Streaming GET response body, iterated in ``chunk_size`` pieces."""

    def __init__(self, response: requests.Response, chunk_size: int):
        self._response = response
        self._chunk_size = chunk_size
        content_length = response.headers.get("Content-Length")
        self.content_length = int(content_length) if content_length else None

    def __iter__(self):
        with http_errors("GET"):
            for chunk in self._response.iter_content(chunk_size=self._chunk_size):
                yield chunk

    def close(self):
        self._response.close()


class S3StorageClient(StorageClient):
    """StorageClient for S3-compatible endpoints.

    Signing is delegated to boto3; part bodies and object bodies travel over
    presigned URLs on pooled ``requests`` sessions so they can be streamed,
    observed chunk by chunk, and aborted.
    """

    def __init__(self, config: TransferConfig, connection_manager: Optional[ConnectionManager] = None,
                 s3_client=None):
        self._config = config
        self._connections = connection_manager or ConnectionManager(
            max_connections_per_host=config.max_concurrent_tasks)
        self._timeout = (min(10.0, config.request_timeout), config.request_timeout)

        if s3_client is None:
            session = boto3.Session(
                aws_access_key_id=config.access_key,
                aws_secret_access_key=config.secret_key,
                region_name=config.region or None,
            )
            s3_client = session.client(
                "s3",
                endpoint_url=config.endpoint,
                config=Config(
                    signature_version="s3v4",
                    retries={"max_attempts": 3, "mode": "standard"},
                    connect_timeout=self._timeout[0],
                    read_timeout=self._timeout[1],
                ),
            )
        self._s3 = s3_client

    def get_object_metadata(self, bucket_name: str, key: str) -> ObjectMetadata:
        with boto_errors("HEAD"):
            response = self._s3.head_object(Bucket=bucket_name, Key=key)
        return ObjectMetadata(
            size=response["ContentLength"],
            last_modified=response["LastModified"],
            content_md5=response.get("ETag", "").strip('"'),
            custom_metadata=response.get("Metadata", {}),
        )

    def initiate_multipart_upload(self, bucket_name: str, key: str) -> str:
        with boto_errors("CreateMultipartUpload"):
            response = self._s3.create_multipart_upload(Bucket=bucket_name, Key=key)
        return response["UploadId"]

    def list_parts(self, bucket_name: str, key: str, upload_id: str) -> PartListing:
        parts = []
        with boto_errors("ListParts"):
            paginator = self._s3.get_paginator("list_parts")
            for page in paginator.paginate(Bucket=bucket_name, Key=key, UploadId=upload_id):
                for item in page.get("Parts", []):
                    parts.append(UploadedPart(
                        part_number=item["PartNumber"],
                        size=item["Size"],
                        etag=item.get("ETag", ""),
                    ))
        # S3 does not report its part ceiling, so the configured one applies
        return PartListing(parts=parts, max_parts=self._config.max_parts)

    def upload_part(self, bucket_name: str, key: str, upload_id: str, part_number: int,
                    body: BinaryIO, content_length: int):
        url = self._presign("upload_part", Bucket=bucket_name, Key=key, UploadId=upload_id,
                            PartNumber=part_number)
        headers = {
            "Content-Length": str(content_length),
            "Content-Type": "application/octet-stream",
        }
        session = self._connections.get_session_for_host(url)
        with http_errors(f"PUT part {part_number}"):
            response = session.put(url, data=body, headers=headers, timeout=self._timeout)
            response.raise_for_status()

    def complete_multipart_upload(self, bucket_name: str, key: str, upload_id: str,
                                  parts: List[UploadedPart]):
        with boto_errors("CompleteMultipartUpload"):
            self._s3.complete_multipart_upload(
                Bucket=bucket_name,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={
                    "Parts": [{"PartNumber": part.part_number, "ETag": part.etag} for part in parts],
                },
            )

    def get_object(self, bucket_name: str, key: str,
                   byte_range: Optional[DownloadRange] = None) -> ObjectStream:
        url = self._presign("get_object", Bucket=bucket_name, Key=key)
        headers = {"Range": byte_range.header} if byte_range else {}
        logger.debug("GET %s/%s %s", bucket_name, key, headers.get("Range", "(full)"))
        session = self._connections.get_session_for_host(url)
        with http_errors("GET"):
            response = session.get(url, headers=headers, stream=True, timeout=self._timeout)
            try:
                response.raise_for_status()
            except requests.exceptions.HTTPError:
                response.close()
                raise

        if byte_range and response.status_code != 206:
            response.close()
            raise TransferError(f"range request for {key} answered with {response.status_code}")
        return HttpObjectStream(response, self._config.chunk_size)

    def close(self):
        self._connections.close_all_sessions()

    def _presign(self, method: str, **params) -> str:
        with boto_errors(f"presign {method}"):
            return self._s3.generate_presigned_url(ClientMethod=method, Params=params,
                                                   ExpiresIn=PRESIGN_EXPIRES)

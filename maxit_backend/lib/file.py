import io
import logging
import mimetypes
import pathlib
import uuid
from functools import lru_cache

from fastapi import UploadFile
from minio import Minio, S3Error  # type: ignore
from urllib3.exceptions import HTTPError

from maxit_backend.constants import (
    MINIO_ACCESS_KEY,
    MINIO_BUCKET,
    MINIO_HOST,
    MINIO_SECRET_KEY,
    MINIO_SECURE,
)
from maxit_backend.errors import ErrorCode, ServiceError

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (S3Error, HTTPError, OSError)


@lru_cache
def get_client() -> Minio:
    # Minio does not connect until the first request, so this is safe to call at any time
    return Minio(
        MINIO_HOST, access_key=MINIO_ACCESS_KEY, secret_key=MINIO_SECRET_KEY, secure=MINIO_SECURE
    )


def guess_content_type(filename: str | None) -> str:
    default = "application/octet-stream"
    if not filename:
        return default
    return mimetypes.guess_type(filename)[0] or default


def file_extension(filename: str | None) -> str:
    return pathlib.Path(filename).suffix.lower() if filename else ""


def get_valid_key(prefix: str, ext: str) -> str:
    key = f"{prefix}/{uuid.uuid4()}{ext}"
    while file_exists(MINIO_BUCKET, key):
        key = f"{prefix}/{uuid.uuid4()}{ext}"
    return key


def read_upload(file: UploadFile, max_size: int) -> bytes:
    """Read an uploaded file, rejecting anything bigger than `max_size` bytes."""
    data = file.file.read(max_size + 1)
    if len(data) > max_size:
        raise ServiceError(
            ErrorCode.FILE_TOO_LARGE, f"File must not be larger than {max_size} bytes"
        )
    return data


def file_exists(bucket_name: str, object_name: str) -> bool:
    try:
        get_client().stat_object(bucket_name, object_name)
    except S3Error:
        return False
    except _STORAGE_ERRORS[1:] as storage_err:
        raise ServiceError(ErrorCode.FILE_STORAGE) from storage_err
    return True


def upload_file(bucket_name: str, object_name: str, data: bytes, content_type: str | None = None):
    """Upload a file to Minio.

    Note: object names are generated, so Minio cannot infer a content type from them.
    Pass one explicitly if the file should be previewable in the Minio console.
    """
    client = get_client()
    try:
        if not client.bucket_exists(bucket_name):
            client.make_bucket(bucket_name)
            logger.info(f"Bucket {bucket_name} created")

        client.put_object(
            bucket_name,
            object_name,
            io.BytesIO(data),
            len(data),
            content_type=content_type or "application/octet-stream",
        )
    except _STORAGE_ERRORS as storage_err:
        logger.error(f"Failed to upload {bucket_name}/{object_name}: {storage_err}")
        raise ServiceError(ErrorCode.FILE_STORAGE) from storage_err


def download_file(bucket_name: str, object_name: str) -> bytes:
    try:
        response = get_client().get_object(bucket_name, object_name)
    except _STORAGE_ERRORS as storage_err:
        raise ServiceError(ErrorCode.FILE_STORAGE) from storage_err

    try:
        return response.read()
    finally:
        response.close()
        response.release_conn()


def remove_prefix(bucket_name: str, prefix: str):
    """Remove every object whose name starts with `prefix`."""
    client = get_client()
    try:
        for obj in client.list_objects(bucket_name, prefix=prefix, recursive=True):
            client.remove_object(bucket_name, obj.object_name)
    except _STORAGE_ERRORS as storage_err:
        logger.error(f"Failed to remove {bucket_name}/{prefix}*: {storage_err}")
        raise ServiceError(ErrorCode.FILE_STORAGE) from storage_err


def remove_files(bucket_name: str, object_names: list[str]):
    client = get_client()
    try:
        for object_name in object_names:
            client.remove_object(bucket_name, object_name)
    except _STORAGE_ERRORS as storage_err:
        logger.error(f"Failed to remove files from {bucket_name}: {storage_err}")
        raise ServiceError(ErrorCode.FILE_STORAGE) from storage_err

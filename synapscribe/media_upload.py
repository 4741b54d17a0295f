"""
Media upload into Cloud Storage.

A multipart form with a single ``file`` field is classified by extension and
streamed into the media bucket under ``<type>/<original filename>``.  Names
are not sanitised and uploads with the same filename overwrite each other.

Errors are returned as ``{"code": ..., "message": ...}`` JSON bodies.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from flask import Request
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage
from werkzeug.exceptions import HTTPException
from werkzeug.formparser import parse_form_data

from .responses import Response, error_response, json_response

logger = logging.getLogger(__name__)

BUCKET_NAME = os.environ.get("MEDIA_BUCKET", "synapscribe-media")
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50 MiB

FILE_TYPES = {
    ".mp3": "audio",
    ".wav": "audio",
    ".ogg": "audio",
    ".mp4": "video",
    ".mov": "video",
    ".avi": "video",
    ".jpg": "image",
    ".jpeg": "image",
    ".png": "image",
    ".gif": "image",
}


def get_file_type(filename: str) -> str:
    """Classify ``filename`` as ``audio``, ``video`` or ``image``.

    Returns an empty string when the extension is not allowed.
    """
    return FILE_TYPES.get(Path(filename).suffix.lower(), "")


def object_name_for(file_type: str, filename: str) -> str:
    return f"{file_type}/{filename}"


def public_url(bucket_name: str, object_name: str) -> str:
    return f"https://storage.cloud.google.com/{bucket_name}/{object_name}"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def handle(request: Request) -> Response:
    """HTTP function body for ``POST`` multipart uploads."""
    if request.mimetype != "multipart/form-data":
        return error_response(400, "Failed to parse form")
    try:
        _, _, files = parse_form_data(
            request.environ, max_content_length=MAX_FILE_SIZE, silent=False
        )
    except (HTTPException, ValueError) as exc:
        logger.info(
            json.dumps(
                {
                    "event": "form_rejected",
                    "content_length": request.content_length,
                    "error": str(exc),
                }
            )
        )
        return error_response(400, "Failed to parse form")
    upload = files.get("file")

    if upload is None or not upload.filename:
        return error_response(400, "No file uploaded")

    file_name = upload.filename
    file_type = get_file_type(file_name)
    if not file_type:
        logger.info(json.dumps({"event": "unsupported_type", "file": file_name}))
        return error_response(400, "Unsupported file type")

    try:
        client = storage.Client()
    except GoogleAuthError:
        logger.exception("Failed to create storage client")
        return error_response(500, "Failed to create storage client")

    object_name = object_name_for(file_type, file_name)
    try:
        blob = client.bucket(BUCKET_NAME).blob(object_name)
        blob.upload_from_file(upload.stream, content_type=upload.mimetype or None)
    except (GoogleAPIError, OSError, ValueError):
        logger.exception("Failed to upload %s", object_name)
        return error_response(500, "Failed to upload file")
    finally:
        client.close()

    logger.info(
        json.dumps({"event": "media_uploaded", "bucket": BUCKET_NAME, "path": object_name})
    )
    return json_response(
        {
            "fileUrl": public_url(BUCKET_NAME, object_name),
            "fileName": file_name,
            "fileType": file_type,
            "uploadedAt": _timestamp(),
        }
    )

"""
Audio transcription triggered by Cloud Storage.

When an object is finalized in the media bucket, the event handler runs a
fixed chain of steps, each of which raises on failure and aborts the event:

1. Decode the event payload into :class:`StorageObjectData`.
2. Open a read-only handle on the source object.
3. Upload the bytes to Gemini and ask for a plain-text transcription.
4. Take the first part of the first candidate.
5. Write the text to ``transcription-<object name>.txt`` in the destination
   bucket.

Nothing is retried here.  Cloud Functions redelivers failed events, and every
step is safe to repeat: the source is re-read and the destination object is
overwritten.

Environment variables:

* ``GEMINI_API_KEY`` – API key for the generative model.  Required.
* ``GEMINI_MODEL`` – Model name (defaults to ``gemini-1.5-pro``).
* ``TRANSCRIPTION_BUCKET`` – Bucket receiving the transcripts.  Required.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, IO, Optional, Tuple

import google.generativeai as genai
from flask import Request
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from googleapiclient.errors import HttpError

from .errors import (
    ConfigurationError,
    EmptyResponseError,
    EventDecodeError,
    ProviderError,
    SynapScribeError,
)
from .responses import Response, read_json_body, text_response

logger = logging.getLogger(__name__)

MODEL_NAME = os.environ.get("GEMINI_MODEL", "gemini-1.5-pro")
TEMPERATURE = 0.4
PROMPT = (
    "Transcribe this audio file. Provide only the transcribed text without any "
    "additional formatting or speaker identification."
)
# Transcripts must not be blocked by the content filters.
SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}
GCS_PREFIX = "gs://"


@dataclass
class StorageObjectData:
    """The part of a storage event payload the pipeline reads."""

    bucket: str
    name: str
    metageneration: int = 0
    time_created: Optional[datetime] = None
    updated: Optional[datetime] = None
    content_type: str = ""

    @property
    def mime_type(self) -> str:
        if self.content_type:
            return self.content_type
        guessed, _ = mimetypes.guess_type(self.name)
        return guessed or "application/octet-stream"


def gcs_url(bucket: str, name: str) -> str:
    return f"{GCS_PREFIX}{bucket}/{name}"


def parse_gcs_url(url: str) -> Tuple[str, str]:
    """Split a ``gs://bucket/object`` URL into bucket and object names.

    Raises:
        ValueError: If ``url`` is not of that form.
    """
    if not url.startswith(GCS_PREFIX):
        raise ValueError("invalid GCS URL format")
    bucket, sep, name = url[len(GCS_PREFIX):].partition("/")
    if not sep or not bucket or not name:
        raise ValueError("invalid GCS URL format")
    return bucket, name


def transcription_name(source_name: str) -> str:
    return f"transcription-{source_name}.txt"


def _parse_time(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if not isinstance(value, str):
        raise ValueError(f"not a timestamp: {value!r}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def decode_event(event) -> StorageObjectData:
    """Decode a storage CloudEvent and log its fields.

    Raises:
        EventDecodeError: If the payload is not an object, lacks a bucket or
            object name, or holds unparseable values.
    """
    logger.info(
        json.dumps({"event": "cloud_event", "id": event.get("id"), "type": event.get("type")})
    )
    payload = event.data
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise EventDecodeError(f"event data is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise EventDecodeError("event data is not an object")

    try:
        data = StorageObjectData(
            bucket=payload.get("bucket") or "",
            name=payload.get("name") or "",
            metageneration=int(payload.get("metageneration") or 0),
            time_created=_parse_time(payload.get("timeCreated")),
            updated=_parse_time(payload.get("updated")),
            content_type=payload.get("contentType") or "",
        )
    except (TypeError, ValueError) as exc:
        raise EventDecodeError(f"event data could not be decoded: {exc}") from exc

    logger.info(
        json.dumps(
            {
                "event": "storage_object",
                "bucket": data.bucket,
                "file": data.name,
                "metageneration": data.metageneration,
                "created": data.time_created.isoformat() if data.time_created else None,
                "updated": data.updated.isoformat() if data.updated else None,
                "content_type": data.content_type,
            }
        )
    )
    if not data.bucket or not data.name:
        raise EventDecodeError("event data is missing bucket or name")
    return data


def open_source(client: storage.Client, data: StorageObjectData) -> IO[bytes]:
    """Open the source object for reading."""
    try:
        return client.bucket(data.bucket).blob(data.name).open("rb")
    except (GoogleAPIError, OSError, ValueError) as exc:
        logger.exception("Failed to open %s", gcs_url(data.bucket, data.name))
        raise ProviderError("failed to create reader for GCS object") from exc


def extract_text(response) -> str:
    """Return the first content part of the first candidate.

    Raises:
        EmptyResponseError: If there is no candidate or it has no parts.
    """
    candidates = list(response.candidates or [])
    if not candidates:
        raise EmptyResponseError("empty response from model")
    content = candidates[0].content
    parts = list(content.parts) if content is not None else []
    if not parts:
        raise EmptyResponseError("empty response from model")
    return parts[0].text


def transcribe(reader: IO[bytes], mime_type: str) -> str:
    """Transcribe the audio readable from ``reader`` with Gemini.

    Args:
        reader: Binary stream over the audio bytes.
        mime_type: MIME type reported to the File API.

    Returns:
        The transcribed text.

    Raises:
        ConfigurationError: If ``GEMINI_API_KEY`` is not set.
        ProviderError: If the upload or the generation call fails.
        EmptyResponseError: If the model answers with nothing usable.
    """
    api_key = os.environ.get("GEMINI_API_KEY")
    if not api_key:
        raise ConfigurationError("GEMINI_API_KEY environment variable is not set")
    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(
        MODEL_NAME,
        safety_settings=SAFETY_SETTINGS,
        generation_config={"temperature": TEMPERATURE},
    )

    try:
        uploaded = genai.upload_file(reader, mime_type=mime_type)
    except (HttpError, GoogleAPIError, OSError, ValueError) as exc:
        logger.exception("Unable to upload file to Gemini")
        raise ProviderError("unable to upload file") from exc
    logger.info(json.dumps({"event": "file_uploaded", "uri": uploaded.uri}))

    try:
        response = model.generate_content([uploaded, PROMPT])
    except (GoogleAPIError, ValueError) as exc:
        logger.exception("Unable to generate contents with %s", MODEL_NAME)
        raise ProviderError("unable to generate contents") from exc

    text = extract_text(response)
    logger.info(json.dumps({"event": "transcription_complete", "model": MODEL_NAME}))
    return text


def write_transcription(
    client: storage.Client, bucket_name: str, source_name: str, text: str
) -> str:
    """Store ``text`` next to its source name and return the object name."""
    object_name = transcription_name(source_name)
    try:
        blob = client.bucket(bucket_name).blob(object_name)
        blob.upload_from_string(text, content_type="text/plain")
    except (GoogleAPIError, OSError, ValueError) as exc:
        logger.exception("Failed to write transcription to %s", gcs_url(bucket_name, object_name))
        raise ProviderError("failed to write transcription to GCS") from exc
    logger.info(
        json.dumps({"event": "transcript_saved", "bucket": bucket_name, "path": object_name})
    )
    return object_name


def _destination_bucket() -> str:
    bucket = os.environ.get("TRANSCRIPTION_BUCKET")
    if not bucket:
        raise ConfigurationError("TRANSCRIPTION_BUCKET environment variable is not set")
    return bucket


def run_pipeline(data: StorageObjectData) -> str:
    """Transcribe the object described by ``data`` and store the result.

    Returns:
        The name of the written transcription object.
    """
    destination = _destination_bucket()
    try:
        client = storage.Client()
    except GoogleAuthError as exc:
        logger.exception("Failed to create GCS client")
        raise ProviderError("failed to create GCS client") from exc
    try:
        with open_source(client, data) as reader:
            text = transcribe(reader, data.mime_type)
        return write_transcription(client, destination, data.name, text)
    finally:
        client.close()


def audio_transcription(event) -> None:
    """CloudEvent function body for ``object.finalized`` events."""
    try:
        data = decode_event(event)
        object_name = run_pipeline(data)
    except SynapScribeError as exc:
        logger.error(json.dumps({"event": "transcription_failed", "error": exc.message}))
        raise
    logger.info(
        json.dumps(
            {"event": "transcription_succeeded", "source": data.name, "path": object_name}
        )
    )


def http_trigger(request: Request) -> Response:
    """Run the pipeline for an object named in a JSON request.

    The body holds either ``bucket`` and ``name`` or a ``uri`` of the form
    ``gs://bucket/object``.  Handy for reprocessing a file by hand.
    """
    try:
        body = read_json_body(request, ("bucket", "name", "uri"))
    except SynapScribeError as exc:
        return text_response(exc.message, exc.status_code)

    bucket, name = body["bucket"], body["name"]
    if body["uri"]:
        try:
            bucket, name = parse_gcs_url(body["uri"])
        except ValueError as exc:
            return text_response(str(exc), 400)
    if not bucket or not name:
        return text_response("Missing 'bucket' or 'name' in request", 400)

    data = StorageObjectData(bucket=bucket, name=name)
    try:
        object_name = run_pipeline(data)
    except SynapScribeError as exc:
        logger.error(json.dumps({"event": "transcription_failed", "error": exc.message}))
        return text_response(f"Transcription failed: {exc.message}", 500)
    saved = gcs_url(_destination_bucket(), object_name)
    return text_response(f"Transcription saved to {saved}", 200)

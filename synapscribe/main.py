"""
Cloud Function entrypoints.

Each function is deployed separately with its own ``--entry-point``:

* ``user_registration`` – HTTP, creates a Firebase account.
* ``user_authentication`` – HTTP, password sign-in returning an ID token.
* ``user_profile_management`` – HTTP, reads or renames the caller's profile.
* ``media_upload`` – HTTP, stores an uploaded media file in Cloud Storage.
* ``audio_transcription`` – CloudEvent, triggered by
  ``google.cloud.storage.object.v1.finalized``.
* ``transcription_http`` – HTTP, reruns a transcription by hand.
"""

import logging

import functions_framework

from . import authentication, profile, registration, transcription
from .media_upload import handle as handle_media_upload

logging.basicConfig(level=logging.INFO, format="%(message)s")


@functions_framework.http
def user_registration(request):
    return registration.handle(request)


@functions_framework.http
def user_authentication(request):
    return authentication.handle(request)


@functions_framework.http
def user_profile_management(request):
    return profile.handle(request)


@functions_framework.http
def media_upload(request):
    return handle_media_upload(request)


@functions_framework.cloud_event
def audio_transcription(cloud_event):
    transcription.audio_transcription(cloud_event)


@functions_framework.http
def transcription_http(request):
    return transcription.http_trigger(request)

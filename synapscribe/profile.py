"""
Profile read and update.

Requests must carry a Firebase ID token in ``X-Forwarded-Authorization``
(API Gateway moves the caller's ``Authorization`` header there).  The token
is verified with a revocation check before the method is dispatched:

* ``GET`` returns the Firebase user record as a profile.
* ``PUT`` updates the display name and returns the updated profile.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict

from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from flask import Request

from . import identity
from .authentication import verify_token
from .errors import AuthError, ProviderError, ValidationError
from .responses import Response, json_response, read_json_body, text_response

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Forwarded-Authorization"
BEARER_PREFIX = "Bearer "


@dataclass
class Profile:
    id: str
    email: str
    name: str
    created_at: str

    @classmethod
    def from_user_record(cls, record) -> "Profile":
        return cls(
            id=record.uid,
            email=record.email or "",
            name=record.display_name or "",
            created_at=format_creation_time(record.user_metadata.creation_timestamp),
        )

    def to_response(self) -> Dict[str, str]:
        data = asdict(self)
        data["createdAt"] = data.pop("created_at")
        return data


def format_creation_time(epoch_millis) -> str:
    """Render an epoch-milliseconds timestamp as RFC3339 in UTC."""
    if not epoch_millis:
        epoch_millis = 0
    moment = datetime.fromtimestamp(int(epoch_millis) // 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def extract_token(request: Request) -> str:
    """Return the bearer token, or an empty string when there is none."""
    header = request.headers.get(AUTH_HEADER, "")
    if header.startswith(BEARER_PREFIX):
        return header[len(BEARER_PREFIX):]
    return ""


def get_profile(uid: str) -> Profile:
    try:
        record = auth.get_user(uid, app=identity.get_app())
    except (ValueError, firebase_exceptions.FirebaseError) as exc:
        logger.exception("Error getting user %s", uid)
        raise ProviderError("Error getting user") from exc
    return Profile.from_user_record(record)


def update_profile(uid: str, name: str) -> Profile:
    """Set the display name of ``uid``; no other field is touched."""
    try:
        record = auth.update_user(uid, display_name=name, app=identity.get_app())
    except (ValueError, firebase_exceptions.FirebaseError) as exc:
        logger.exception("Error updating user %s", uid)
        raise ProviderError("Error updating user") from exc
    logger.info(json.dumps({"event": "profile_updated", "uid": uid}))
    return Profile.from_user_record(record)


def _read_update(request: Request) -> str:
    name = read_json_body(request, ("name",))["name"]
    if not name.strip():
        raise ValidationError("Invalid request body")
    return name


def handle(request: Request) -> Response:
    """HTTP function body for profile requests."""
    try:
        identity.get_app()
    except ProviderError:
        return text_response("Error initializing app", 500)

    id_token = extract_token(request)
    logger.info(
        json.dumps(
            {"event": "profile_request", "method": request.method, "has_token": bool(id_token)}
        )
    )
    if not id_token:
        return text_response("No token provided", 401)

    try:
        claims = verify_token(id_token, check_revoked=True)
    except AuthError:
        return text_response("Invalid token", 401)
    except ProviderError:
        return text_response("Error initializing app", 500)
    uid = claims["uid"]

    try:
        if request.method == "GET":
            profile = get_profile(uid)
        elif request.method == "PUT":
            profile = update_profile(uid, _read_update(request))
        else:
            return text_response("Method not allowed", 405)
    except ValidationError as exc:
        return text_response(exc.message, exc.status_code)
    except ProviderError as exc:
        return text_response(exc.message, exc.status_code)

    return json_response(profile.to_response())

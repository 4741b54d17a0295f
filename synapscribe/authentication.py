"""
Password sign-in.

Proof of password and trust in the resulting token are two separate steps:
the credentials go to the Identity Toolkit REST endpoint, and the ID token it
returns is then verified with the Firebase Admin SDK before it is handed to
the caller.

Environment variables:

* ``FIREBASE_API_KEY`` – Web API key of the Firebase project.  Required.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict

import requests
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from flask import Request

from . import identity
from .errors import AuthError, ProviderError, ValidationError
from .responses import Response, json_response, read_json_body, text_response

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"


def sign_in_with_password(email: str, password: str) -> Dict[str, Any]:
    """Exchange an email and password for an ID token.

    Returns:
        The decoded sign-in payload with ``idToken``, ``email``, ``localId``
        and ``displayName`` among its keys.

    Raises:
        AuthError: If the API key is missing, the request fails, or the
            endpoint answers with anything but 200.
    """
    api_key = os.environ.get("FIREBASE_API_KEY")
    if not api_key:
        logger.error(json.dumps({"event": "missing_api_key", "variable": "FIREBASE_API_KEY"}))
        raise AuthError("FIREBASE_API_KEY environment variable is not set")

    try:
        response = requests.post(
            SIGN_IN_URL,
            params={"key": api_key},
            json={"email": email, "password": password, "returnSecureToken": True},
        )
    except requests.RequestException as exc:
        logger.error(json.dumps({"event": "sign_in_request_error", "error": str(exc)}))
        raise AuthError("failed to send request") from exc

    if response.status_code != 200:
        logger.info(
            json.dumps(
                {"event": "sign_in_refused", "status": response.status_code, "email": email}
            )
        )
        raise AuthError("authentication failed")

    try:
        payload = response.json()
    except ValueError as exc:
        raise AuthError("failed to decode sign-in response") from exc
    if not isinstance(payload, dict) or not payload.get("idToken"):
        raise AuthError("sign-in response carried no ID token")
    return payload


def verify_token(id_token: str, *, check_revoked: bool = False) -> Dict[str, Any]:
    """Verify an ID token with Firebase and return its decoded claims.

    Raises:
        ProviderError: If the Firebase app cannot be initialised.
        AuthError: If the token is malformed, expired, revoked or otherwise
            rejected.
    """
    app = identity.get_app()
    try:
        return auth.verify_id_token(id_token, app=app, check_revoked=check_revoked)
    except (ValueError, firebase_exceptions.FirebaseError) as exc:
        logger.info(json.dumps({"event": "token_rejected", "error": str(exc)}))
        raise AuthError("Invalid ID token") from exc


def handle(request: Request) -> Response:
    """HTTP function body for ``POST`` sign-in requests."""
    try:
        body = read_json_body(request, ("email", "password"))
    except ValidationError as exc:
        return text_response(exc.message, exc.status_code)

    try:
        sign_in = sign_in_with_password(body["email"], body["password"])
    except AuthError:
        return text_response("Authentication failed", 401)

    try:
        claims = verify_token(sign_in["idToken"])
    except ProviderError as exc:
        return text_response(exc.message, 500)
    except AuthError as exc:
        return text_response(exc.message, exc.status_code)

    logger.info(json.dumps({"event": "user_authenticated", "uid": claims["uid"]}))
    return json_response(
        {
            "idToken": sign_in["idToken"],
            "user": {
                "id": claims["uid"],
                "email": sign_in.get("email", ""),
                "name": sign_in.get("displayName", ""),
            },
        }
    )

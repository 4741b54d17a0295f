"""
Account registration.

A candidate account is validated locally (email shape, password strength,
non-blank name) before Firebase Authentication is asked to create it.  The
password is forwarded to Firebase once and never echoed back.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Dict

from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from flask import Request

from . import identity
from .errors import ProviderError, ValidationError
from .responses import Response, json_response, read_json_body, text_response

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,4}$")
MIN_PASSWORD_LENGTH = 8


def _has_uppercase(value: str) -> bool:
    return value.lower() != value


def _has_lowercase(value: str) -> bool:
    return value.upper() != value


def _has_digit(value: str) -> bool:
    return any("0" <= char <= "9" for char in value)


@dataclass
class Account:
    email: str
    password: str
    name: str
    id: str = ""

    def validate(self) -> None:
        """Check the account invariants, raising on the first violation.

        Raises:
            ValidationError: With a message naming the violated rule.
        """
        if not EMAIL_PATTERN.fullmatch(self.email):
            raise ValidationError("invalid email format")
        if len(self.password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("password must be at least 8 characters long")
        if not (
            _has_uppercase(self.password)
            and _has_lowercase(self.password)
            and _has_digit(self.password)
        ):
            raise ValidationError(
                "password must contain at least one uppercase letter, "
                "one lowercase letter, and one number"
            )
        if not self.name.strip():
            raise ValidationError("name cannot be empty")

    def to_response(self) -> Dict[str, str]:
        return {"id": self.id, "email": self.email, "name": self.name}


def register_user(account: Account) -> str:
    """Create the account in Firebase Authentication and return its UID.

    Raises:
        ProviderError: If Firebase rejects the account (for instance a
            duplicate email) or cannot be reached.
    """
    app = identity.get_app()
    try:
        record = auth.create_user(
            email=account.email,
            password=account.password,
            display_name=account.name,
            app=app,
        )
    except (ValueError, firebase_exceptions.FirebaseError) as exc:
        logger.error(
            json.dumps(
                {"event": "create_user_error", "email": account.email, "error": str(exc)}
            )
        )
        raise ProviderError("Failed to register user") from exc
    logger.info(json.dumps({"event": "user_created", "uid": record.uid}))
    return record.uid


def handle(request: Request) -> Response:
    """HTTP function body for ``POST`` registration requests."""
    try:
        body = read_json_body(request, ("email", "password", "name"))
        account = Account(email=body["email"], password=body["password"], name=body["name"])
        account.validate()
    except ValidationError as exc:
        logger.info(json.dumps({"event": "registration_rejected", "reason": exc.message}))
        return text_response(exc.message, exc.status_code)

    try:
        account.id = register_user(account)
    except ProviderError:
        return text_response("Failed to register user", 500)

    return json_response(account.to_response(), 201)

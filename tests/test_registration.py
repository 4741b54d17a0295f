from types import SimpleNamespace

import pytest
from firebase_admin import auth

import synapscribe.registration as registration
from synapscribe.errors import ValidationError


def account(**overrides):
    fields = {"email": "user@example.com", "password": "Passw0rd", "name": "Ada"}
    fields.update(overrides)
    return registration.Account(**fields)


APP = object()


@pytest.fixture
def created(monkeypatch):
    calls = []

    def fake_create_user(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(uid="uid-123")

    monkeypatch.setattr(registration.identity, "get_app", lambda: APP)
    monkeypatch.setattr(registration.auth, "create_user", fake_create_user)
    return calls


def test_valid_account_passes():
    account().validate()


@pytest.mark.parametrize(
    "email",
    ["foo@bar", "a@b.toolong", "User@example.com", "", "no-at.com", "user@example.com\n"],
)
def test_invalid_email_rejected(email):
    with pytest.raises(ValidationError, match="invalid email format"):
        account(email=email).validate()


@pytest.mark.parametrize(
    "password",
    ["Pa0", "Short1A", "alllower1", "ALLUPPER1", "NoDigitsHere"],
)
def test_weak_password_rejected(password):
    with pytest.raises(ValidationError, match="password"):
        account(password=password).validate()


def test_short_password_message():
    with pytest.raises(ValidationError) as excinfo:
        account(password="Ab1").validate()
    assert excinfo.value.message == "password must be at least 8 characters long"


@pytest.mark.parametrize("name", ["", "   ", "\t\n"])
def test_blank_name_rejected(name):
    with pytest.raises(ValidationError, match="name cannot be empty"):
        account(name=name).validate()


def test_response_never_contains_password():
    body = account(id="x").to_response()
    assert body == {"id": "x", "email": "user@example.com", "name": "Ada"}


def test_register_returns_201(call, created):
    resp = call(
        registration.handle,
        "/",
        method="POST",
        json={"email": "a@b.com", "password": "Passw0rd", "name": "Ada"},
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["email"] == "a@b.com"
    assert body["name"] == "Ada"
    assert body["id"]
    assert "password" not in body
    assert created == [
        {"email": "a@b.com", "password": "Passw0rd", "display_name": "Ada", "app": APP}
    ]


def test_invalid_account_is_400_and_not_created(call, created):
    resp = call(
        registration.handle,
        "/",
        method="POST",
        json={"email": "a@b.com", "password": "password", "name": "Ada"},
    )
    assert resp.status_code == 400
    assert b"uppercase" in resp.data
    assert created == []


@pytest.mark.parametrize("data", ["not json", '["a"]', '{"email": 5}'])
def test_bad_body_is_400(call, created, data):
    resp = call(
        registration.handle, "/", method="POST", data=data, content_type="application/json"
    )
    assert resp.status_code == 400
    assert resp.data == b"Invalid request body"


def test_provider_failure_is_500_without_detail(call, monkeypatch):
    def fail(**kwargs):
        raise auth.EmailAlreadyExistsError("EMAIL_EXISTS: secret detail", None, None)

    monkeypatch.setattr(registration.identity, "get_app", lambda: object())
    monkeypatch.setattr(registration.auth, "create_user", fail)
    resp = call(
        registration.handle,
        "/",
        method="POST",
        json={"email": "a@b.com", "password": "Passw0rd", "name": "Ada"},
    )
    assert resp.status_code == 500
    assert resp.data == b"Failed to register user"

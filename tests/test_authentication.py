from unittest.mock import Mock

import pytest
import requests
from firebase_admin import auth

import synapscribe.authentication as authentication
from synapscribe.errors import AuthError, ProviderError

SIGN_IN = {
    "idToken": "tok",
    "email": "a@b.com",
    "localId": "uid-1",
    "displayName": "Ada",
}


@pytest.fixture(autouse=True)
def api_key(monkeypatch):
    monkeypatch.setenv("FIREBASE_API_KEY", "key")
    monkeypatch.setattr(authentication.identity, "get_app", lambda: object())


@pytest.fixture
def posted(monkeypatch):
    calls = []

    def fake_post(url, **kwargs):
        calls.append((url, kwargs))
        return Mock(status_code=200, json=lambda: SIGN_IN)

    monkeypatch.setattr(authentication.requests, "post", fake_post)
    return calls


def test_sign_in_posts_credentials(posted):
    payload = authentication.sign_in_with_password("a@b.com", "Passw0rd")
    assert payload["idToken"] == "tok"
    url, kwargs = posted[0]
    assert url == authentication.SIGN_IN_URL
    assert kwargs["params"] == {"key": "key"}
    assert kwargs["json"] == {
        "email": "a@b.com",
        "password": "Passw0rd",
        "returnSecureToken": True,
    }


def test_sign_in_without_api_key(monkeypatch, posted):
    monkeypatch.delenv("FIREBASE_API_KEY")
    with pytest.raises(AuthError):
        authentication.sign_in_with_password("a@b.com", "Passw0rd")
    assert posted == []


def test_sign_in_refused(monkeypatch):
    monkeypatch.setattr(
        authentication.requests,
        "post",
        lambda *a, **k: Mock(status_code=400, text='{"error": "INVALID_PASSWORD"}'),
    )
    with pytest.raises(AuthError):
        authentication.sign_in_with_password("a@b.com", "wrong")


def test_sign_in_network_error(monkeypatch):
    def fail(*a, **k):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(authentication.requests, "post", fail)
    with pytest.raises(AuthError):
        authentication.sign_in_with_password("a@b.com", "Passw0rd")


def test_login_returns_token_and_user(call, posted, monkeypatch):
    monkeypatch.setattr(
        authentication.auth, "verify_id_token", lambda token, **k: {"uid": "uid-1"}
    )
    resp = call(
        authentication.handle, "/", method="POST", json={"email": "a@b.com", "password": "Passw0rd"}
    )
    assert resp.status_code == 200
    assert resp.get_json() == {
        "idToken": "tok",
        "user": {"id": "uid-1", "email": "a@b.com", "name": "Ada"},
    }


def test_login_bad_body(call, posted):
    resp = call(
        authentication.handle, "/", method="POST", data="{", content_type="application/json"
    )
    assert resp.status_code == 400
    assert posted == []


def test_login_refused_is_401(call, monkeypatch):
    monkeypatch.setattr(
        authentication.requests, "post", lambda *a, **k: Mock(status_code=400)
    )
    resp = call(
        authentication.handle, "/", method="POST", json={"email": "a@b.com", "password": "x"}
    )
    assert resp.status_code == 401


def test_login_unverifiable_token_is_401(call, posted, monkeypatch):
    def reject(token, **kwargs):
        raise auth.InvalidIdTokenError("bad signature")

    monkeypatch.setattr(authentication.auth, "verify_id_token", reject)
    resp = call(
        authentication.handle, "/", method="POST", json={"email": "a@b.com", "password": "Passw0rd"}
    )
    assert resp.status_code == 401
    assert resp.data == b"Invalid ID token"


def test_login_without_firebase_app_is_500(call, posted, monkeypatch):
    def unavailable():
        raise ProviderError("Failed to initialize Firebase app")

    monkeypatch.setattr(authentication.identity, "get_app", unavailable)
    resp = call(
        authentication.handle, "/", method="POST", json={"email": "a@b.com", "password": "Passw0rd"}
    )
    assert resp.status_code == 500

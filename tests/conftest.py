import io

import flask
import pytest


class FakeBlob:
    def __init__(self, name, data=None):
        self.name = name
        self.data = data
        self.content_type = None
        self.fail_upload = False

    def upload_from_string(self, data, content_type=None):
        if self.fail_upload:
            raise OSError("connection reset")
        self.data = data
        self.content_type = content_type

    def upload_from_file(self, stream, content_type=None):
        if self.fail_upload:
            raise OSError("connection reset")
        self.data = stream.read()
        self.content_type = content_type

    def open(self, mode="rb"):
        assert mode == "rb"
        return io.BytesIO(self.data or b"")


class FakeBucket:
    def __init__(self, name):
        self.name = name
        self.blobs = {}

    def blob(self, name):
        return self.blobs.setdefault(name, FakeBlob(name))


class FakeStorageClient:
    def __init__(self):
        self.buckets = {}
        self.closed = False

    def bucket(self, name):
        return self.buckets.setdefault(name, FakeBucket(name))

    def close(self):
        self.closed = True


@pytest.fixture
def app():
    return flask.Flask(__name__)


@pytest.fixture
def call(app):
    """Invoke an HTTP function inside a request context and return the response."""

    def _call(handler, *args, **kwargs):
        with app.test_request_context(*args, **kwargs):
            return app.make_response(handler(flask.request))

    return _call


@pytest.fixture
def storage_client():
    return FakeStorageClient()

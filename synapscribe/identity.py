"""Access to the Firebase Admin SDK.

The SDK keeps initialised apps in a process-wide registry and refuses to
initialise the default app twice, so warm instances reuse the app created by
the first invocation.
"""

import json
import logging
import os

import firebase_admin
from firebase_admin import exceptions as firebase_exceptions

from .errors import ProviderError

logger = logging.getLogger(__name__)

PROJECT_ID = os.environ.get("FIREBASE_PROJECT_ID", "synapscribe")


def get_app() -> firebase_admin.App:
    """Return the default Firebase app, initialising it on first use.

    Raises:
        ProviderError: If the app cannot be initialised, e.g. because no
            application default credentials are available.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    try:
        app = firebase_admin.initialize_app(options={"projectId": PROJECT_ID})
    except (ValueError, firebase_exceptions.FirebaseError) as exc:
        logger.error(json.dumps({"event": "firebase_init_error", "error": str(exc)}))
        raise ProviderError("Failed to initialize Firebase app") from exc
    logger.info(json.dumps({"event": "firebase_initialized", "project": PROJECT_ID}))
    return app

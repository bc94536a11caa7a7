"""Google Secret Manager adapter.

Secrets are append-only: writes add a new version and reads always resolve
``versions/latest``. Values stored here are OAuth tokens and per-channel OBS
tokens, referenced from Firestore by name only.
"""

import logging

from google.api_core import exceptions as gcp_exceptions
from google.cloud import secretmanager

from chatvibes_api.core.errors import SecretStoreError

logger = logging.getLogger(__name__)


def normalize_secret_version_path(path: str) -> str:
    """Append ``/versions/latest`` unless the path already names a version."""
    path = path.strip()
    if "/versions/" in path:
        return path
    return f"{path.rstrip('/')}/versions/latest"


def access_token_secret_id(user_id: str) -> str:
    return f"twitch-access-token-{user_id}"


def refresh_token_secret_id(user_id: str) -> str:
    return f"twitch-refresh-token-{user_id}"


def obs_token_secret_id(login: str) -> str:
    return f"obs-token-{login.lower()}"


class SecretStore:
    """Async wrapper over SecretManagerServiceAsyncClient for one project."""

    def __init__(self, client: secretmanager.SecretManagerServiceAsyncClient, project: str):
        if not project:
            raise ValueError("Google Cloud project is required for Secret Manager")
        self.client = client
        self.project = project

    def secret_path(self, secret_id: str) -> str:
        """Full resource name of a secret (without version)."""
        if secret_id.startswith("projects/"):
            return secret_id
        return f"projects/{self.project}/secrets/{secret_id}"

    async def access(self, name: str) -> str:
        """Return the latest value of *name* (id or full path), whitespace-trimmed."""
        version_path = normalize_secret_version_path(self.secret_path(name))
        try:
            response = await self.client.access_secret_version(request={"name": version_path})
        except gcp_exceptions.GoogleAPICallError as e:
            raise SecretStoreError(f"Failed to access secret {version_path}: {e}") from e

        value = response.payload.data.decode("utf-8").strip()
        if not value:
            raise SecretStoreError(f"Secret {version_path} is empty")
        return value

    async def ensure_secret(self, secret_id: str) -> str:
        """Create the secret container if it does not exist. Returns its path."""
        try:
            await self.client.create_secret(
                request={
                    "parent": f"projects/{self.project}",
                    "secret_id": secret_id,
                    "secret": {"replication": {"automatic": {}}},
                }
            )
            logger.info(f"Created secret {secret_id}")
        except gcp_exceptions.AlreadyExists:
            logger.debug(f"Secret {secret_id} already exists")
        except gcp_exceptions.GoogleAPICallError as e:
            raise SecretStoreError(f"Failed to create secret {secret_id}: {e}") from e
        return self.secret_path(secret_id)

    async def add_version(self, secret_id: str, value: str) -> str:
        """Append *value* as the newest version. Returns the ``versions/latest`` path."""
        parent = self.secret_path(secret_id)
        try:
            await self.client.add_secret_version(
                request={"parent": parent, "payload": {"data": value.encode("utf-8")}}
            )
        except gcp_exceptions.GoogleAPICallError as e:
            raise SecretStoreError(f"Failed to add version to {secret_id}: {e}") from e
        return normalize_secret_version_path(parent)

    async def put(self, secret_id: str, value: str) -> str:
        await self.ensure_secret(secret_id)
        return await self.add_version(secret_id, value)

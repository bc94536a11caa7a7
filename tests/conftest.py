"""Shared fixtures: in-memory Firestore and Secret Manager, mocked Twitch/WaveSpeed HTTP."""

import copy
import json
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient
from google.api_core import exceptions as gcp_exceptions

from chatvibes_api.app import create_app
from chatvibes_api.core.config import AppSecrets, Settings
from chatvibes_api.core.context import AppContext, build_context
from chatvibes_api.core.database import DocumentStore
from chatvibes_api.services import AuthService, SecretStore

PROJECT = "test-project"
JWT_SECRET = "test-jwt-secret"
STREAMER_ID = "1234"
STREAMER_LOGIN = "streamer"
BOT_USER_ID = "999"


# ============================================
# Firestore
# ============================================


def _deep_merge(target: dict, data: dict) -> dict:
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


class FakeDocument:
    def __init__(self, db: "FakeFirestore", collection: str, doc_id: str):
        self.db = db
        self.collection = collection
        self.id = doc_id

    async def get(self):
        data = self.db.data.get(self.collection, {}).get(self.id)
        return SimpleNamespace(
            exists=data is not None, to_dict=lambda: copy.deepcopy(data)
        )

    async def set(self, data: dict, merge: bool = False) -> None:
        docs = self.db.data.setdefault(self.collection, {})
        if merge and self.id in docs:
            _deep_merge(docs[self.id], data)
        else:
            docs[self.id] = copy.deepcopy(data)

    async def update(self, data: dict) -> None:
        docs = self.db.data.setdefault(self.collection, {})
        if self.id not in docs:
            raise gcp_exceptions.NotFound(f"No document to update: {self.collection}/{self.id}")
        if self.db.fail_updates:
            raise gcp_exceptions.ServiceUnavailable("update unavailable")
        docs[self.id].update(copy.deepcopy(data))


class FakeFirestore:
    """Just enough of firestore.AsyncClient for DocumentStore."""

    def __init__(self):
        self.data: dict[str, dict[str, dict]] = {}
        self.fail_updates = False

    def collection(self, name: str):
        return SimpleNamespace(document=lambda doc_id: FakeDocument(self, name, doc_id))

    def seed(self, collection: str, doc_id: str, data: dict) -> None:
        self.data.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def doc(self, collection: str, doc_id: str) -> dict | None:
        return self.data.get(collection, {}).get(doc_id)


# ============================================
# Secret Manager
# ============================================


class FakeSecretManager:
    """Versioned secrets keyed by ``projects/<p>/secrets/<id>``."""

    def __init__(self):
        self.secrets: dict[str, list[bytes]] = {}

    async def access_secret_version(self, request: dict):
        name = request["name"]
        secret, _, version = name.partition("/versions/")
        versions = self.secrets.get(secret)
        if not versions:
            raise gcp_exceptions.NotFound(f"Secret {name} not found")
        data = versions[-1] if version == "latest" else versions[int(version) - 1]
        return SimpleNamespace(payload=SimpleNamespace(data=data))

    async def create_secret(self, request: dict):
        path = f"{request['parent']}/secrets/{request['secret_id']}"
        if path in self.secrets:
            raise gcp_exceptions.AlreadyExists(f"Secret {path} already exists")
        self.secrets[path] = []
        return SimpleNamespace(name=path)

    async def add_secret_version(self, request: dict):
        versions = self.secrets.setdefault(request["parent"], [])
        versions.append(request["payload"]["data"])
        return SimpleNamespace(name=f"{request['parent']}/versions/{len(versions)}")

    def seed(self, secret_id: str, value: str) -> None:
        self.secrets.setdefault(f"projects/{PROJECT}/secrets/{secret_id}", []).append(
            value.encode("utf-8")
        )

    def latest(self, secret_id: str) -> str | None:
        versions = self.secrets.get(f"projects/{PROJECT}/secrets/{secret_id}")
        return versions[-1].decode("utf-8") if versions else None


# ============================================
# Twitch / WaveSpeed HTTP
# ============================================


class FakeTwitch:
    """httpx.MockTransport handler emulating the Twitch and WaveSpeed endpoints used."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.rewards: dict[str, dict] = {}
        self.users = {"chatvibesbot": BOT_USER_ID}
        self.granted_scopes = ["user:read:email", "channel:manage:moderators"]
        self.refresh_ok = True
        self.patch_status: int | None = None
        self.patch_message = "patch rejected"
        self.moderator_status = 204
        self.moderator_message = "nope"
        self.wavespeed_status = 200
        self.wavespeed_body: dict = {
            "data": {"status": "completed", "outputs": ["https://cdn.example.com/audio.mp3"]}
        }
        self._next_reward = 1

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path

        if host == "id.twitch.tv":
            return self._oauth(request, path)
        if host == "api.twitch.tv":
            return self._helix(request, path)
        if host == "api.wavespeed.ai":
            return httpx.Response(self.wavespeed_status, json=self.wavespeed_body)
        return httpx.Response(200, json={"ok": True})

    def _oauth(self, request: httpx.Request, path: str) -> httpx.Response:
        if path == "/oauth2/validate":
            return httpx.Response(
                200,
                json={
                    "client_id": "cid",
                    "login": STREAMER_LOGIN,
                    "user_id": STREAMER_ID,
                    "scopes": self.granted_scopes,
                    "expires_in": 14400,
                },
            )

        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        grant = form.get("grant_type")
        if grant == "client_credentials":
            return httpx.Response(200, json={"access_token": "app-token", "expires_in": 3600})
        if grant == "refresh_token":
            if not self.refresh_ok:
                return httpx.Response(400, json={"status": 400, "message": "Invalid refresh token"})
            return httpx.Response(
                200,
                json={
                    "access_token": "refreshed-access",
                    "refresh_token": "refreshed-refresh",
                    "expires_in": 14400,
                },
            )
        return httpx.Response(
            200,
            json={
                "access_token": "user-access",
                "refresh_token": "user-refresh",
                "expires_in": 14400,
                "scope": self.granted_scopes,
            },
        )

    def _helix(self, request: httpx.Request, path: str) -> httpx.Response:
        params = request.url.params

        if path == "/helix/users":
            login = params.get("login")
            if login is None:
                return httpx.Response(
                    200,
                    json={
                        "data": [
                            {
                                "id": STREAMER_ID,
                                "login": STREAMER_LOGIN,
                                "display_name": "Streamer",
                                "email": "streamer@example.com",
                            }
                        ]
                    },
                )
            user_id = self.users.get(login)
            return httpx.Response(200, json={"data": [{"id": user_id}] if user_id else []})

        if path == "/helix/moderation/moderators":
            if self.moderator_status >= 400:
                return httpx.Response(
                    self.moderator_status, json={"message": self.moderator_message}
                )
            return httpx.Response(self.moderator_status)

        if path == "/helix/channel_points/custom_rewards":
            return self._rewards(request, params)

        return httpx.Response(404, json={"message": "Not Found"})

    def _rewards(self, request: httpx.Request, params) -> httpx.Response:
        reward_id = params.get("id")
        if request.method == "GET":
            if reward_id:
                reward = self.rewards.get(reward_id)
                return httpx.Response(200, json={"data": [reward] if reward else []})
            return httpx.Response(200, json={"data": list(self.rewards.values())})

        if request.method == "POST":
            body = json.loads(request.content)
            new_id = f"reward-{self._next_reward}"
            self._next_reward += 1
            self.rewards[new_id] = {"id": new_id, **body}
            return httpx.Response(200, json={"data": [self.rewards[new_id]]})

        if request.method == "PATCH":
            if self.patch_status:
                status, self.patch_status = self.patch_status, None
                return httpx.Response(status, json={"message": self.patch_message})
            if reward_id not in self.rewards:
                return httpx.Response(404, json={"message": "Not Found"})
            self.rewards[reward_id].update(json.loads(request.content))
            return httpx.Response(200, json={"data": [self.rewards[reward_id]]})

        if request.method == "DELETE":
            if self.rewards.pop(reward_id, None) is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(204)

        return httpx.Response(405)


# ============================================
# Fixtures
# ============================================


def make_settings(**overrides) -> Settings:
    values = {
        "gcloud_project": PROJECT,
        "use_env_secrets": True,
        "twitch_client_id": "cid",
        "twitch_client_secret": "csecret",
        "jwt_secret_key": JWT_SECRET,
        "wavespeed_api_key": "ws-key",
        "callback_url": "https://api.example.com/auth/twitch/callback",
        "frontend_url": "https://app.example.com",
        "obs_browser_base_url": "https://obs.example.com",
        "tts_bot_url": "https://bot.example.com",
        "twitch_bot_username": "chatvibesbot",
        "allowed_channels": "",
        "allowed_channels_secret_name": "",
        "environment": "development",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_client(settings: Settings, firestore, secret_manager, http) -> TestClient:
    """Client for an app built with non-default settings (use as a context manager)."""
    return TestClient(
        create_app(
            settings, firestore_client=firestore, secret_client=secret_manager, http_client=http
        )
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def firestore() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def secret_manager() -> FakeSecretManager:
    return FakeSecretManager()


@pytest.fixture
def twitch() -> FakeTwitch:
    return FakeTwitch()


@pytest.fixture
def http(twitch: FakeTwitch) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=twitch.transport())


@pytest.fixture
def store(firestore: FakeFirestore) -> DocumentStore:
    return DocumentStore(firestore)


@pytest.fixture
def secret_store(secret_manager: FakeSecretManager) -> SecretStore:
    return SecretStore(secret_manager, PROJECT)


@pytest.fixture
def context(settings, store, secret_store, http) -> AppContext:
    secrets = AppSecrets(
        twitch_client_id="cid",
        twitch_client_secret="csecret",
        jwt_secret_key=JWT_SECRET,
        wavespeed_api_key="ws-key",
    )
    return build_context(settings, secrets, store, secret_store, http)


@pytest.fixture
def auth_service() -> AuthService:
    return AuthService(secret_key=JWT_SECRET)


@pytest.fixture
def app(settings, firestore, secret_manager, http):
    return create_app(
        settings, firestore_client=firestore, secret_client=secret_manager, http_client=http
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_token(auth_service: AuthService) -> str:
    return auth_service.create_session_token(STREAMER_ID, STREAMER_LOGIN, "Streamer")


@pytest.fixture
def auth_headers(session_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {session_token}"}


def seed_channel(
    firestore: FakeFirestore,
    secret_manager: FakeSecretManager,
    *,
    expires_in: timedelta = timedelta(hours=2),
    **fields,
) -> None:
    """A managed channel with stored tokens that are valid for *expires_in*."""
    secret_manager.seed(f"twitch-access-token-{STREAMER_ID}", "stored-access")
    secret_manager.seed(f"twitch-refresh-token-{STREAMER_ID}", "stored-refresh")
    data = {
        "channelName": STREAMER_LOGIN,
        "twitchUserId": STREAMER_ID,
        "twitchUserLogin": STREAMER_LOGIN,
        "twitchDisplayName": "Streamer",
        "isActive": False,
        "oauthTier": "full",
        "grantedScopes": ["user:read:email", "channel:manage:moderators"],
        "twitchAccessTokenExpiresAt": datetime.now(UTC) + expires_in,
        "needsTwitchReAuth": False,
    }
    data.update(fields)
    firestore.seed("managedChannels", STREAMER_LOGIN, data)

"""
API Client for the Firebase backend
Talks to the Firebase REST endpoints (Identity Toolkit, Realtime Database,
Cloud Storage and Remote Config) with httpx, with error handling and token
management.
"""

import asyncio
import json
import logging
import time
import uuid
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional
from urllib.parse import quote, unquote, urlparse

import httpx

from firechat.config import PHOTO_MIME_TYPE, settings
from firechat.feed import Snapshot
from firechat.models import AuthUser
from firechat.services import (
    AuthListener,
    BlobStore,
    CancelListener,
    ConfigService,
    DocumentStore,
    IdentityProvider,
    ProgressListener,
    SnapshotListener,
    Subscription,
    UploadSource,
)
from firechat.session_manager import SessionManager

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 256 * 1024


class FirechatAPIError(Exception):
    """A backend call failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def create_http_client(timeout: float = settings.HTTP_TIMEOUT) -> httpx.AsyncClient:
    """Shared HTTP client for all Firebase services"""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=15.0),
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=20, keepalive_expiry=30.0),
    )


def _error_detail(response: httpx.Response) -> str:
    """Pull the error message out of a Firebase error body"""
    try:
        error_data = response.json()
    except ValueError:
        return response.text[:200]
    error = error_data.get("error", error_data) if isinstance(error_data, dict) else error_data
    if isinstance(error, dict):
        return str(error.get("message", error))
    return str(error)


class _FirebaseService:
    """Common request handling for the Firebase REST clients"""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _request(self, method: str, url: str, context: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.debug(f"{context} timeout: {e}")
            raise FirechatAPIError("Request timeout. Please check your internet connection.") from e
        except httpx.ConnectError as e:
            logger.debug(f"{context} connection error: {e}")
            raise FirechatAPIError(f"Cannot connect to {urlparse(url).netloc}. Server might be down.") from e

        if response.is_error:
            detail = _error_detail(response)
            logger.debug(f"{context} failed ({response.status_code}): {detail}")
            raise FirechatAPIError(f"{context} failed: {detail}", status_code=response.status_code)
        return response


class FirebaseAuth(_FirebaseService, IdentityProvider):
    """Email/password and Google sign-in through the Identity Toolkit API"""

    def __init__(self, client: httpx.AsyncClient, api_key: str = settings.FIREBASE_API_KEY,
                 session_manager: Optional[SessionManager] = None,
                 identity_url: str = settings.IDENTITY_TOOLKIT_URL,
                 token_url: str = settings.SECURE_TOKEN_URL):
        super().__init__(client)
        self.api_key = api_key
        self.identity_url = identity_url.rstrip('/')
        self.token_url = token_url.rstrip('/')
        self.session_manager = session_manager
        self._user: Optional[AuthUser] = None
        self._listeners: List[AuthListener] = []
        self._refreshing = False

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._user

    @property
    def id_token(self) -> Optional[str]:
        return self._user.id_token if self._user else None

    def restore_session(self) -> Optional[AuthUser]:
        """Pick up the user saved by a previous run"""
        if self.session_manager is not None:
            self._user = self.session_manager.load_session()
        return self._user

    # Listeners
    def add_auth_state_listener(self, listener: AuthListener):
        if listener in self._listeners:
            return
        self._listeners.append(listener)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            listener(self._user)
        else:
            loop.call_soon(self._notify_one, listener)

    def remove_auth_state_listener(self, listener: AuthListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_one(self, listener: AuthListener):
        # Removed before the deferred call ran
        if listener in self._listeners:
            listener(self._user)

    def _set_user(self, user: Optional[AuthUser]):
        self._user = user
        if self.session_manager is not None:
            if user is None:
                self.session_manager.clear_session()
            else:
                self.session_manager.save_session(user)
        for listener in list(self._listeners):
            listener(user)

    # Auth endpoints
    def _account_url(self, action: str) -> str:
        return f"{self.identity_url}/accounts:{action}"

    async def sign_in_with_email(self, email: str, password: str) -> AuthUser:
        """Sign in with email and password"""
        logger.debug(f"Signing in {email}")
        response = await self._request(
            "POST", self._account_url("signInWithPassword"), "Sign in",
            params={"key": self.api_key},
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        user = AuthUser.model_validate(response.json())
        self._set_user(user)
        logger.info(f"Signed in as {user.display_name or user.email}")
        return user

    async def sign_up_with_email(self, name: str, email: str, password: str) -> AuthUser:
        """Create an email account and set its display name"""
        response = await self._request(
            "POST", self._account_url("signUp"), "Registration",
            params={"key": self.api_key},
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        data = response.json()
        if name:
            await self._request(
                "POST", self._account_url("update"), "Profile update",
                params={"key": self.api_key},
                json={"idToken": data["idToken"], "displayName": name, "returnSecureToken": False},
            )
            data["displayName"] = name
        user = AuthUser.model_validate(data)
        self._set_user(user)
        return user

    async def sign_in_with_google(self, token: str, token_type: str = "id_token") -> AuthUser:
        """Exchange a Google token for a Firebase session"""
        response = await self._request(
            "POST", self._account_url("signInWithIdp"), "Google sign in",
            params={"key": self.api_key},
            json={
                "postBody": f"{token_type}={token}&providerId=google.com",
                "requestUri": "http://localhost",
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        user = AuthUser.model_validate(response.json())
        self._set_user(user)
        return user

    async def refresh_id_token(self) -> bool:
        """
        Refresh the ID token using the refresh token.
        Returns True if successful, False otherwise.
        """
        if self._refreshing or self._user is None or not self._user.refresh_token:
            return False

        self._refreshing = True
        try:
            response = await self._request(
                "POST", f"{self.token_url}/token", "Token refresh",
                params={"key": self.api_key},
                data={"grant_type": "refresh_token", "refresh_token": self._user.refresh_token},
            )
            data = response.json()
            self._user = self._user.model_copy(update={
                "id_token": data["id_token"],
                "refresh_token": data.get("refresh_token", self._user.refresh_token),
            })
            if self.session_manager is not None:
                self.session_manager.update_tokens(self._user.id_token, self._user.refresh_token)
            logger.debug("ID token refreshed")
            return True
        except FirechatAPIError as e:
            logger.warning(f"Token refresh failed: {e}")
            return False
        finally:
            self._refreshing = False

    async def sign_out(self):
        """Forget the current user; listeners see the signed-out state"""
        self._set_user(None)
        logger.info("Signed out")


class RealtimeDatabase(_FirebaseService, DocumentStore):
    """Realtime Database REST client with streaming snapshots"""

    def __init__(self, client: httpx.AsyncClient, database_url: str = settings.FIREBASE_DATABASE_URL,
                 auth: Optional[FirebaseAuth] = None):
        super().__init__(client)
        self.database_url = database_url.rstrip('/')
        self.auth = auth

    def _url(self, path: str) -> str:
        return f"{self.database_url}/{path.strip('/')}.json"

    def _params(self) -> Dict[str, str]:
        token = self.auth.id_token if self.auth else None
        return {"auth": token} if token else {}

    async def push(self, path: str, value: Dict[str, Any]) -> str:
        response = await self._request("POST", self._url(path), "Write", params=self._params(), json=value)
        key = response.json()["name"]
        logger.debug(f"Pushed {path}/{key}")
        return key

    async def remove(self, path: str):
        await self._request("DELETE", self._url(path), "Delete", params=self._params())
        logger.debug(f"Removed {path}")

    def subscribe(self, path: str, on_snapshot: SnapshotListener,
                  on_cancelled: Optional[CancelListener] = None) -> Subscription:
        task = asyncio.get_running_loop().create_task(self._listen(path, on_snapshot, on_cancelled))
        return Subscription.from_task(task)

    async def _listen(self, path: str, on_snapshot: SnapshotListener,
                      on_cancelled: Optional[CancelListener]):
        tree: Any = None
        try:
            async for event, data in self._events(path):
                if event in ("put", "patch"):
                    tree = apply_stream_event(tree, event, data)
                    on_snapshot(Snapshot.from_value(path, tree))
                elif event in ("cancel", "auth_revoked"):
                    raise FirechatAPIError(f"Listener at {path} {event}: {data}")
        except (FirechatAPIError, httpx.HTTPError) as e:
            logger.debug(f"Listener at {path} cancelled: {e}")
            if on_cancelled is not None:
                on_cancelled(e)

    async def _events(self, path: str) -> AsyncIterator:
        """Yield (event, data) pairs from the server-sent event stream"""
        async with self.client.stream(
            "GET", self._url(path),
            params=self._params(),
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(None, connect=15.0),
            follow_redirects=True,
        ) as response:
            if response.is_error:
                await response.aread()
                raise FirechatAPIError(f"Listen failed: {_error_detail(response)}", response.status_code)

            event, data_lines = None, []
            async for line in response.aiter_lines():
                line = line.rstrip("\r\n")
                if line.startswith("event:"):
                    event = line[len("event:"):].strip()
                elif line.startswith("data:"):
                    data_lines.append(line[len("data:"):].strip())
                elif not line and event is not None:
                    raw = "\n".join(data_lines)
                    try:
                        data = json.loads(raw) if raw else None
                    except ValueError:
                        data = raw
                    yield event, data
                    event, data_lines = None, []


def apply_stream_event(tree: Any, event: str, data: Dict[str, Any]) -> Any:
    """Apply a put/patch stream event to the locally mirrored tree"""
    segments = [s for s in data.get("path", "/").split("/") if s]
    if event == "put":
        return _set_at(tree, segments, data.get("data"))
    for key, value in (data.get("data") or {}).items():
        tree = _set_at(tree, segments + [s for s in key.split("/") if s], value)
    return tree


def _set_at(tree: Any, segments: List[str], value: Any) -> Any:
    if not segments:
        return value
    node = dict(tree) if isinstance(tree, dict) else {}
    head, rest = segments[0], segments[1:]
    child = _set_at(node.get(head), rest, value)
    if child is None:
        node.pop(head, None)
    else:
        node[head] = child
    return node or None


class FirebaseStorage(_FirebaseService, BlobStore):
    """Cloud Storage for Firebase REST client"""

    def __init__(self, client: httpx.AsyncClient, bucket: str = settings.FIREBASE_STORAGE_BUCKET,
                 root: str = settings.PHOTOS_PATH, storage_url: str = settings.STORAGE_URL,
                 auth: Optional[FirebaseAuth] = None):
        super().__init__(client)
        self.bucket = bucket
        self.root = root.strip('/')
        self.storage_url = storage_url.rstrip('/')
        self.auth = auth

    def _headers(self) -> Dict[str, str]:
        token = self.auth.id_token if self.auth else None
        return {"Authorization": f"Firebase {token}"} if token else {}

    def _object_url(self, object_path: str) -> str:
        return f"{self.storage_url}/b/{self.bucket}/o/{quote(object_path, safe='')}"

    def object_path_from_url(self, url: str) -> str:
        """Object path for a download URL or gs:// URL"""
        parsed = urlparse(url)
        if parsed.scheme == "gs":
            return parsed.path.lstrip('/')
        marker = "/o/"
        if marker not in parsed.path:
            raise FirechatAPIError(f"Not a storage URL: {url}")
        return unquote(parsed.path.split(marker, 1)[1])

    async def upload(self, name: str, source: UploadSource,
                     on_progress: Optional[ProgressListener] = None) -> str:
        object_path = f"{self.root}/{name}" if self.root else name
        file_path = Path(source)
        total = file_path.stat().st_size

        async def body():
            transferred = 0
            with open(file_path, "rb") as f:
                while True:
                    chunk = f.read(UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    transferred += len(chunk)
                    yield chunk
                    if on_progress is not None:
                        on_progress(transferred, total)

        logger.debug(f"Uploading {file_path} to {object_path} ({total} bytes)")
        response = await self._request(
            "POST", f"{self.storage_url}/b/{self.bucket}/o", "Upload",
            params={"name": object_path, "uploadType": "media"},
            headers={**self._headers(), "Content-Type": PHOTO_MIME_TYPE, "Content-Length": str(total)},
            content=body(),
        )
        return response.json().get("name", object_path)

    async def download_url(self, object_path: str) -> str:
        response = await self._request("GET", self._object_url(object_path), "Metadata", headers=self._headers())
        metadata = response.json()
        token = (metadata.get("downloadTokens") or "").split(",")[0]
        url = f"{self._object_url(object_path)}?alt=media"
        return f"{url}&token={token}" if token else url

    async def delete_by_url(self, url: str):
        object_path = self.object_path_from_url(url)
        await self._request("DELETE", self._object_url(object_path), "Delete file", headers=self._headers())
        logger.debug(f"Deleted {object_path}")


class RemoteConfig(_FirebaseService, ConfigService):
    """Remote Config client fetch with a local cache window"""

    def __init__(self, client: httpx.AsyncClient, project_id: str = settings.FIREBASE_PROJECT_ID,
                 api_key: str = settings.FIREBASE_API_KEY, app_id: str = settings.FIREBASE_APP_ID,
                 config_url: str = settings.REMOTE_CONFIG_URL, instance_id: Optional[str] = None,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(client)
        self.project_id = project_id
        self.api_key = api_key
        self.app_id = app_id
        self.config_url = config_url.rstrip('/')
        self.instance_id = instance_id or uuid.uuid4().hex
        self.clock = clock
        self._defaults: Dict[str, Any] = {}
        self._fetched: Optional[Dict[str, Any]] = None
        self._active: Dict[str, Any] = {}
        self._last_fetch: Optional[float] = None

    def set_defaults(self, defaults: Dict[str, Any]):
        self._defaults = dict(defaults)

    async def fetch(self, cache_expiration: int):
        if self._last_fetch is not None and self.clock() - self._last_fetch < cache_expiration:
            logger.debug("Remote config served from cache")
            return

        response = await self._request(
            "POST", f"{self.config_url}/projects/{self.project_id}/namespaces/firebase:fetch",
            "Config fetch",
            params={"key": self.api_key},
            json={"appInstanceId": self.instance_id, "appId": self.app_id},
        )
        data = response.json()
        self._fetched = data.get("entries", {}) if data.get("state") != "NO_TEMPLATE" else {}
        self._last_fetch = self.clock()

    def activate_fetched(self) -> bool:
        if self._fetched is None:
            return False
        changed = self._fetched != self._active
        self._active, self._fetched = self._fetched, None
        return changed

    def get_int(self, key: str) -> int:
        for source in (self._active, self._defaults):
            if key in source:
                try:
                    return int(source[key])
                except (TypeError, ValueError):
                    logger.warning(f"Config value {key}={source[key]!r} is not an integer")
        return 0

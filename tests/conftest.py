#!/usr/bin/env python3
"""
Pytest configuration file
In-memory stand-ins for every service the chat screen talks to
"""

import asyncio
import os
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Keep the real .env out of test runs
os.environ['DEBUG'] = 'False'
os.environ.setdefault('FIREBASE_API_KEY', 'test-api-key')
os.environ.setdefault('FIREBASE_PROJECT_ID', 'firechat-test')

# Add project root to path to allow imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from firechat.controller import ChatScreenController
from firechat.feed import Snapshot
from firechat.models import AuthUser
from firechat.services import (
    BlobStore,
    CameraDevice,
    ChatView,
    ConfigService,
    DocumentStore,
    IdentityProvider,
    PermissionChecker,
    Subscription,
)


class FakeView(ChatView):
    def __init__(self):
        self.messages: List = []
        self.render_count = 0
        self.loading_hidden = False
        self.send_enabled: Optional[bool] = None
        self.input_cleared = 0
        self.max_length: Optional[int] = None
        self.progress: List[int] = []
        self.progress_threads: List[int] = []
        self.toasts: List[str] = []
        self.sign_in_requests: List[List[str]] = []
        self.finished = False
        self.picked_mime: Optional[str] = None
        self.camera_visible = False
        self.transforms: List = []

    def render_messages(self, messages):
        self.messages = list(messages)
        self.render_count += 1

    def hide_loading(self):
        self.loading_hidden = True

    def set_send_enabled(self, enabled):
        self.send_enabled = enabled

    def clear_input(self):
        self.input_cleared += 1

    def set_max_length(self, max_length):
        self.max_length = max_length

    def set_progress(self, percent):
        self.progress.append(percent)
        self.progress_threads.append(threading.get_ident())

    def show_toast(self, message):
        self.toasts.append(message)

    def show_sign_in(self, providers):
        self.sign_in_requests.append(list(providers))

    def finish(self):
        self.finished = True

    def pick_image(self, mime_type):
        self.picked_mime = mime_type

    def show_camera(self):
        self.camera_visible = True

    def show_main(self):
        self.camera_visible = False

    def set_preview_transform(self, matrix):
        self.transforms.append(matrix)


class FakeIdentity(IdentityProvider):
    def __init__(self, user: Optional[AuthUser] = None):
        self._user = user
        self.listeners: List = []

    @property
    def current_user(self):
        return self._user

    def add_auth_state_listener(self, listener):
        self.listeners.append(listener)
        listener(self._user)

    def remove_auth_state_listener(self, listener):
        self.listeners.remove(listener)

    def set_user(self, user: Optional[AuthUser]):
        self._user = user
        for listener in list(self.listeners):
            listener(user)

    async def sign_in_with_email(self, email, password):
        user = AuthUser(uid="u-email", email=email, display_name=email.split("@")[0])
        self.set_user(user)
        return user

    async def sign_up_with_email(self, name, email, password):
        user = AuthUser(uid="u-new", email=email, display_name=name)
        self.set_user(user)
        return user

    async def sign_in_with_google(self, token, token_type="id_token"):
        user = AuthUser(uid="u-google", display_name="google user")
        self.set_user(user)
        return user

    async def sign_out(self):
        self.set_user(None)


class FakeStore(DocumentStore):
    def __init__(self):
        self.pushed: List[tuple] = []
        self.removed: List[str] = []
        self.subscriptions: List[Dict[str, Any]] = []

    async def push(self, path, value):
        key = f"-K{len(self.pushed):04d}"
        self.pushed.append((path, value))
        return key

    async def remove(self, path):
        self.removed.append(path)

    def subscribe(self, path, on_snapshot, on_cancelled=None):
        entry = {"path": path, "on_snapshot": on_snapshot, "on_cancelled": on_cancelled}
        entry["subscription"] = Subscription(lambda: entry.update(cancelled=True))
        self.subscriptions.append(entry)
        return entry["subscription"]

    @property
    def active(self):
        return [s for s in self.subscriptions if s["subscription"].active]

    def emit(self, children):
        for entry in self.active:
            entry["on_snapshot"](Snapshot(path=entry["path"], children=tuple(children)))

    def fail(self, error):
        for entry in self.active:
            entry["on_cancelled"](error)


class FakeBlobStore(BlobStore):
    def __init__(self):
        self.progress_events: List[tuple] = []
        # Report progress from a worker thread, like a native upload task
        self.progress_in_thread = False
        self.upload_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.uploads: List[tuple] = []
        self.deleted: List[str] = []

    async def upload(self, name, source, on_progress=None):
        self.uploads.append((name, source))
        if self.upload_error is not None:
            raise self.upload_error
        if on_progress is not None:
            if self.progress_in_thread:
                await asyncio.get_running_loop().run_in_executor(None, self._report, on_progress)
            else:
                self._report(on_progress)
        return f"chat_photos/{name}"

    def _report(self, on_progress):
        for transferred, total in self.progress_events:
            on_progress(transferred, total)

    async def download_url(self, object_path):
        return f"https://storage.test/o/{object_path.replace('/', '%2F')}?alt=media&token=t"

    async def delete_by_url(self, url):
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(url)


class FakeConfig(ConfigService):
    def __init__(self):
        self.defaults: Dict[str, Any] = {}
        self.remote: Dict[str, Any] = {}
        self.active: Dict[str, Any] = {}
        self.fetch_error: Optional[Exception] = None
        self.fetch_calls: List[int] = []

    def set_defaults(self, defaults):
        self.defaults = dict(defaults)

    async def fetch(self, cache_expiration):
        self.fetch_calls.append(cache_expiration)
        if self.fetch_error is not None:
            raise self.fetch_error

    def activate_fetched(self):
        self.active = dict(self.remote)
        return True

    def get_int(self, key):
        return int(self.active.get(key, self.defaults.get(key, 0)))


class FakeCamera(CameraDevice):
    def __init__(self):
        self.preview_started = 0
        self.preview_error: Optional[Exception] = None
        self.capture_error: Optional[Exception] = None
        self.stopped = False

    def start_preview(self):
        if self.preview_error is not None:
            raise self.preview_error
        self.preview_started += 1

    async def take_picture(self, path):
        if self.capture_error is not None:
            raise self.capture_error
        Path(path).write_bytes(b"\xff\xd8\xff" + b"\x00" * 997)
        return Path(path)

    def stop(self):
        self.stopped = True


class FakePermissions(PermissionChecker):
    def __init__(self, granted=True):
        self.granted = granted
        self.requests: List[tuple] = []

    def is_granted(self, permission):
        return self.granted

    def request(self, permissions, request_code):
        self.requests.append((list(permissions), request_code))


@pytest.fixture
def view():
    return FakeView()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def remote_config():
    return FakeConfig()


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def permissions():
    return FakePermissions()


@pytest.fixture
async def controller(view, identity, store, blobs, remote_config, camera, permissions, tmp_path):
    ctrl = ChatScreenController(
        view=view,
        identity=identity,
        store=store,
        blobs=blobs,
        remote_config=remote_config,
        camera=camera,
        permissions=permissions,
        messages_path="messages",
        pictures_dir=tmp_path / "pictures",
        developer_mode=False,
        progress_reset_delay=0.01,
    )
    yield ctrl
    ctrl.close()


@pytest.fixture
def alice():
    return AuthUser(uid="u-alice", display_name="alice", email="alice@example.com",
                    id_token="id-token", refresh_token="refresh-token")

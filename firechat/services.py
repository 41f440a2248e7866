"""
Service interfaces used by the chat screen.

The controller only talks to these; ``firechat.api_client`` provides the
Firebase implementations and the tests provide in-memory fakes.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from firechat.feed import Snapshot
from firechat.models import AuthUser, Message

AuthListener = Callable[[Optional[AuthUser]], None]
SnapshotListener = Callable[[Snapshot], None]
CancelListener = Callable[[Exception], None]
ProgressListener = Callable[[int, int], None]

# Local file path or a picker content reference
UploadSource = Union[str, Path]


class Subscription:
    """Handle for one attached listener; cancel() detaches it"""

    def __init__(self, on_cancel: Callable[[], None]):
        self._on_cancel = on_cancel
        self._cancelled = False

    @classmethod
    def from_task(cls, task: "asyncio.Task") -> "Subscription":
        sub = cls(task.cancel)
        task.add_done_callback(lambda _: sub._mark_done())
        return sub

    def _mark_done(self):
        self._cancelled = True

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self):
        if self._cancelled:
            return
        self._cancelled = True
        self._on_cancel()


class IdentityProvider(ABC):
    """Sign-in state plus the email and Google sign-in flows"""

    @property
    @abstractmethod
    def current_user(self) -> Optional[AuthUser]:
        ...

    @abstractmethod
    def add_auth_state_listener(self, listener: AuthListener):
        """Attach a listener; it is called once with the current state"""

    @abstractmethod
    def remove_auth_state_listener(self, listener: AuthListener):
        ...

    @abstractmethod
    async def sign_in_with_email(self, email: str, password: str) -> AuthUser:
        ...

    @abstractmethod
    async def sign_up_with_email(self, name: str, email: str, password: str) -> AuthUser:
        ...

    @abstractmethod
    async def sign_in_with_google(self, token: str, token_type: str = "id_token") -> AuthUser:
        """Sign in with a Google id_token or access_token"""

    @abstractmethod
    async def sign_out(self):
        ...


class DocumentStore(ABC):
    """Realtime tree store holding the message collection"""

    @abstractmethod
    async def push(self, path: str, value: Dict[str, Any]) -> str:
        """Append ``value`` under a generated key and return the key"""

    @abstractmethod
    async def remove(self, path: str):
        ...

    @abstractmethod
    def subscribe(self, path: str, on_snapshot: SnapshotListener,
                  on_cancelled: Optional[CancelListener] = None) -> Subscription:
        """Deliver a full snapshot of ``path`` on every change"""


class BlobStore(ABC):
    """Object storage for photo bytes"""

    @abstractmethod
    async def upload(self, name: str, source: UploadSource,
                     on_progress: Optional[ProgressListener] = None) -> str:
        """Upload ``source`` as ``name``; returns the stored object path"""

    @abstractmethod
    async def download_url(self, object_path: str) -> str:
        ...

    @abstractmethod
    async def delete_by_url(self, url: str):
        ...


class ConfigService(ABC):
    """Remote config values with local defaults"""

    @abstractmethod
    def set_defaults(self, defaults: Dict[str, Any]):
        ...

    @abstractmethod
    async def fetch(self, cache_expiration: int):
        ...

    @abstractmethod
    def activate_fetched(self) -> bool:
        ...

    @abstractmethod
    def get_int(self, key: str) -> int:
        ...


class CameraDevice(ABC):
    """Live preview plus still capture to a file"""

    @abstractmethod
    def start_preview(self):
        ...

    @abstractmethod
    async def take_picture(self, path: Path) -> Path:
        ...

    def stop(self):
        pass


class PermissionChecker(ABC):
    @abstractmethod
    def is_granted(self, permission: str) -> bool:
        ...

    @abstractmethod
    def request(self, permissions: List[str], request_code: int):
        """Issue one grouped permission request; the result arrives later"""

    def all_granted(self, permissions: Iterable[str]) -> bool:
        return all(self.is_granted(p) for p in permissions)


class ChatView(ABC):
    """What the controller needs from the screen it drives"""

    @abstractmethod
    def render_messages(self, messages: List[Message]):
        ...

    @abstractmethod
    def hide_loading(self):
        ...

    @abstractmethod
    def set_send_enabled(self, enabled: bool):
        ...

    @abstractmethod
    def clear_input(self):
        ...

    @abstractmethod
    def set_max_length(self, max_length: int):
        ...

    @abstractmethod
    def set_progress(self, percent: int):
        ...

    @abstractmethod
    def show_toast(self, message: str):
        ...

    @abstractmethod
    def show_sign_in(self, providers: List[str]):
        ...

    @abstractmethod
    def finish(self):
        ...

    @abstractmethod
    def pick_image(self, mime_type: str):
        ...

    @abstractmethod
    def show_camera(self):
        ...

    @abstractmethod
    def show_main(self):
        ...

    @abstractmethod
    def set_preview_transform(self, matrix):
        ...

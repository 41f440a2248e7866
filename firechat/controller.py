"""
Chat screen controller
Coordinates sign-in state, the realtime message feed, outgoing text and
photo messages, remote config and the camera flow. All state changes run on
the event loop that drives the UI.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple

from firechat.camera import ROTATION_0, CameraError, create_image_file, preview_transform
from firechat.config import (
    ANONYMOUS,
    CACHE_EXPIRATION_SECONDS,
    DEFAULT_MSG_LENGTH_LIMIT,
    MSG_LENGTH_KEY,
    PHOTO_MIME_TYPE,
    PROGRESS_RESET_DELAY,
    REQUEST_CODE_PERMISSIONS,
    settings,
)
from firechat.feed import Snapshot, apply_snapshot
from firechat.models import AuthUser, Message
from firechat.permissions_manager import REQUIRED_PERMISSIONS, get_granted_permissions
from firechat.services import (
    BlobStore,
    CameraDevice,
    ChatView,
    ConfigService,
    DocumentStore,
    IdentityProvider,
    PermissionChecker,
    Subscription,
    UploadSource,
)

logger = logging.getLogger(__name__)

SIGN_IN_PROVIDERS = ["email", "google"]


def progress_percent(transferred: int, total: int) -> int:
    """Upload progress as a whole percentage"""
    if total <= 0:
        return 0
    return round(100 * transferred / total)


def last_path_segment(source: UploadSource) -> str:
    """Blob name for a picked file or content reference"""
    text = str(source).rstrip("/")
    return text.replace("\\", "/").rsplit("/", 1)[-1]


class ChatScreenController:
    """Drives a ChatView from the injected services"""

    def __init__(
        self,
        view: ChatView,
        identity: IdentityProvider,
        store: DocumentStore,
        blobs: BlobStore,
        remote_config: ConfigService,
        camera: CameraDevice,
        permissions: PermissionChecker,
        messages_path: str = settings.MESSAGES_PATH,
        pictures_dir: Path = settings.PICTURES_DIR,
        developer_mode: bool = settings.DEBUG,
        progress_reset_delay: float = PROGRESS_RESET_DELAY,
    ):
        self.view = view
        self.identity = identity
        self.store = store
        self.blobs = blobs
        self.remote_config = remote_config
        self.camera = camera
        self.permissions = permissions
        self.messages_path = messages_path.strip("/")
        self.pictures_dir = Path(pictures_dir)
        self.developer_mode = developer_mode
        self.progress_reset_delay = progress_reset_delay

        # Session state
        self.username = ANONYMOUS
        self.messages: List[Message] = []
        self.max_length = DEFAULT_MSG_LENGTH_LIMIT
        self.progress = 0
        self.current_photo_path: Optional[Path] = None

        self._feed: Optional[Subscription] = None
        self._auth_attached = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._progress_reset: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self._preview_size: Optional[Tuple[float, float]] = None
        self._rotation = ROTATION_0

    # Lifecycle
    def on_create(self):
        """Initial screen state plus the remote config fetch"""
        self._loop = asyncio.get_running_loop()
        self.view.set_send_enabled(False)
        self.view.set_max_length(self.max_length)
        self.remote_config.set_defaults({MSG_LENGTH_KEY: DEFAULT_MSG_LENGTH_LIMIT})
        self._spawn(self.fetch_config())

    def on_resume(self):
        if self._auth_attached:
            return
        self._auth_attached = True
        self.identity.add_auth_state_listener(self._on_auth_state_changed)

    def on_pause(self):
        if self._auth_attached:
            self.identity.remove_auth_state_listener(self._on_auth_state_changed)
            self._auth_attached = False
        self._detach_feed()

    def close(self):
        """Tear everything down when the screen goes away"""
        self.on_pause()
        if self._progress_reset is not None:
            self._progress_reset.cancel()
            self._progress_reset = None
        for task in list(self._tasks):
            task.cancel()
        self.camera.stop()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _post(self, callback: Callable, *args):
        """Run callback on the UI loop, whichever thread calls this"""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is None or running is self._loop:
            callback(*args)
        else:
            self._loop.call_soon_threadsafe(callback, *args)

    # Sign-in state
    def _on_auth_state_changed(self, user: Optional[AuthUser]):
        if user is None:
            self._on_signed_out_clean_up()
            self.view.show_sign_in(SIGN_IN_PROVIDERS)
        else:
            self._on_signed_in_initialize(user.display_name)

    def on_sign_in_result(self, ok: bool):
        if ok:
            self.view.show_toast("Signed in!")
        else:
            self.view.show_toast("Sign in canceled!")
            self.view.finish()

    async def sign_out(self):
        await self.identity.sign_out()

    def _on_signed_in_initialize(self, name: Optional[str]):
        self.username = name or ANONYMOUS
        self._attach_feed()

    def _on_signed_out_clean_up(self):
        self.username = ANONYMOUS
        self._detach_feed()

    # Message feed
    def _attach_feed(self):
        self._detach_feed()
        self._feed = self.store.subscribe(self.messages_path, self._on_snapshot, self._on_feed_cancelled)

    def _detach_feed(self):
        self.messages = []
        self.view.render_messages([])
        if self._feed is not None:
            self._feed.cancel()
            self._feed = None

    def _on_snapshot(self, snapshot: Snapshot):
        self.messages = apply_snapshot(self.messages, snapshot)
        self.view.render_messages(list(self.messages))
        self.view.hide_loading()

    def _on_feed_cancelled(self, error: Exception):
        # No retry; the feed stays as it was
        logger.debug(f"Message feed cancelled: {error}")

    # Text messages
    def on_text_changed(self, text: str):
        self.view.set_send_enabled(bool(text.strip()))

    async def send_text(self, text: str) -> Optional[Message]:
        if not text or not text.strip():
            return None
        message = Message(name=self.username, text=text[:self.max_length])
        await self.store.push(self.messages_path, message.to_store())
        self.view.clear_input()
        self.view.set_send_enabled(False)
        return message

    # Remote config
    async def fetch_config(self):
        cache_expiration = 0 if self.developer_mode else CACHE_EXPIRATION_SECONDS
        try:
            await self.remote_config.fetch(cache_expiration)
            self.remote_config.activate_fetched()
        except Exception as e:
            logger.warning(f"Error fetching config: {e}")
        self._apply_retrieved_length_limit()

    def _apply_retrieved_length_limit(self):
        limit = self.remote_config.get_int(MSG_LENGTH_KEY)
        self.max_length = limit if limit > 0 else DEFAULT_MSG_LENGTH_LIMIT
        self.view.set_max_length(self.max_length)

    # Photos
    def pick_photo(self):
        self.view.pick_image(PHOTO_MIME_TYPE)

    async def on_photo_picked(self, source: Optional[UploadSource]) -> Optional[Message]:
        if not source:
            return None
        return await self.upload_photo(last_path_segment(source), source)

    def request_camera(self) -> bool:
        """Open the camera, or ask for permissions and stop here"""
        if self.permissions.all_granted(REQUIRED_PERMISSIONS):
            return self._show_camera()
        self.permissions.request(list(REQUIRED_PERMISSIONS), REQUEST_CODE_PERMISSIONS)
        return False

    def on_permissions_result(self, request_code: int):
        if request_code != REQUEST_CODE_PERMISSIONS:
            return
        if self.permissions.all_granted(REQUIRED_PERMISSIONS):
            self._show_camera()
        else:
            logger.info(f"Camera permissions denied, granted: {get_granted_permissions(self.permissions)}")
            self.view.show_toast("Permissions not granted by the user.")
            self.view.finish()

    def _show_camera(self) -> bool:
        self.view.show_camera()
        try:
            self.camera.start_preview()
        except CameraError as e:
            msg = f"Camera unavailable: {e}"
            self.view.show_toast(msg)
            logger.error(msg)
            self.view.show_main()
            return False
        self._update_transform()
        return True

    async def capture_photo(self) -> Optional[Message]:
        self.view.show_main()
        path = create_image_file(self.pictures_dir)
        self.current_photo_path = path
        try:
            saved = await self.camera.take_picture(path)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            msg = f"Photo capture failed: {e}"
            self.view.show_toast(msg)
            logger.error(msg)
            path.unlink(missing_ok=True)
            self.current_photo_path = None
            return None

        saved = Path(saved)
        msg = f"Photo capture succeeded: {saved.resolve()}"
        self.view.show_toast(msg)
        logger.debug(msg)
        return await self.upload_photo(saved.name, saved)

    async def upload_photo(self, name: str, source: UploadSource) -> Optional[Message]:
        """Upload a photo and post it as a message"""

        def on_progress(transferred: int, total: int):
            self._post(self._publish_progress, progress_percent(transferred, total))

        try:
            object_path = await self.blobs.upload(name, source, on_progress)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # No retry and no message for a failed upload
            logger.error(f"Upload of {name} failed: {e}")
            return None

        self._schedule_progress_reset()
        url = await self.blobs.download_url(object_path)
        message = Message(name=self.username, photo_url=url)
        await self.store.push(self.messages_path, message.to_store())
        return message

    def _publish_progress(self, percent: int):
        self.progress = percent
        self.view.set_progress(percent)

    def _schedule_progress_reset(self):
        if self._progress_reset is not None:
            self._progress_reset.cancel()
        self._progress_reset = asyncio.get_running_loop().call_later(
            self.progress_reset_delay, self._publish_progress, 0
        )

    async def delete_photo(self, photo_url: str, key: str) -> bool:
        """Delete the blob, then its message. The message stays if the blob delete fails."""
        try:
            await self.blobs.delete_by_url(photo_url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(f"Could not delete {photo_url}: {e}")
            return False
        await self.store.remove(f"{self.messages_path}/{key}")
        self.view.show_toast("File deleted")
        return True

    # Camera preview
    def on_preview_layout_changed(self, width: float, height: float):
        self._preview_size = (width, height)
        self._update_transform()

    def on_rotation_changed(self, rotation: int):
        self._rotation = rotation
        self._update_transform()

    def _update_transform(self):
        if self._preview_size is None:
            return
        transform = preview_transform(self._preview_size[0], self._preview_size[1], self._rotation)
        if transform is not None:
            self.view.set_preview_transform(transform)

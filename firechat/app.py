"""
Firechat - realtime chat client
Built with Python Flet + Firebase REST services
"""

import logging

import flet as ft

from firechat import configure_logging
from firechat.api_client import (
    FirebaseAuth,
    FirebaseStorage,
    RealtimeDatabase,
    RemoteConfig,
    create_http_client,
)
from firechat.camera import AndroidCamera
from firechat.config import settings
from firechat.controller import ChatScreenController
from firechat.permissions_manager import AndroidPermissions
from firechat.session_manager import SessionManager
from firechat.views.chat_view import FletChatView

logger = logging.getLogger(__name__)


class FirechatApp:
    def __init__(self, page: ft.Page):
        self.page = page
        self.page.title = "Firechat"
        self.page.theme_mode = ft.ThemeMode.LIGHT
        self.page.padding = 0

        # HTTP client shared by every service
        self.client = create_http_client()
        self.auth = FirebaseAuth(self.client, session_manager=SessionManager(settings.SESSION_FILE))
        self.auth.restore_session()

        self.view = FletChatView(page, self.auth)
        self.permissions = AndroidPermissions()
        self.controller = ChatScreenController(
            view=self.view,
            identity=self.auth,
            store=RealtimeDatabase(self.client, auth=self.auth),
            blobs=FirebaseStorage(self.client, auth=self.auth),
            remote_config=RemoteConfig(self.client),
            camera=AndroidCamera(),
            permissions=self.permissions,
        )
        self.view.bind(self.controller)
        self.permissions.on_result = self.controller.on_permissions_result

        self.page.on_app_lifecycle_state_change = self.on_lifecycle_change
        self.page.on_disconnect = lambda e: self.page.run_task(self.shutdown)

        logger.debug(f"App initialized. Database: {settings.FIREBASE_DATABASE_URL}")

    def start(self):
        self.controller.on_create()
        self.controller.on_resume()

    def on_lifecycle_change(self, e: ft.AppLifecycleStateChangeEvent):
        if e.state == ft.AppLifecycleState.RESUME:
            self.controller.on_resume()
        elif e.state in (ft.AppLifecycleState.PAUSE, ft.AppLifecycleState.HIDE):
            self.controller.on_pause()

    async def shutdown(self):
        self.controller.close()
        await self.client.aclose()


async def main(page: ft.Page):
    configure_logging(settings.DEBUG)
    app = FirechatApp(page)
    # Saved ID tokens expire after an hour
    if app.auth.current_user is not None:
        await app.auth.refresh_id_token()
    app.start()


def run():
    ft.app(target=main)


if __name__ == "__main__":
    run()

"""
Chat View - the single Firechat screen
Message list, text input, photo buttons, upload progress and camera panel
"""

from typing import List, Optional

import flet as ft

from firechat.api_client import FirechatAPIError
from firechat.camera import ROTATION_0, ROTATION_90, PreviewTransform
from firechat.controller import ChatScreenController
from firechat.error_handler import ErrorHandler
from firechat.models import Message
from firechat.services import ChatView, IdentityProvider
from firechat.theme import COLORS, FONT_SIZES, RADIUS, SPACING
from firechat.views.login import LoginDialog


class FletChatView(ChatView):
    """ChatView drawn with Flet controls"""

    def __init__(self, page: ft.Page, identity: IdentityProvider):
        self.page = page
        self.identity = identity
        self.error_handler = ErrorHandler(page)
        self.controller: Optional[ChatScreenController] = None
        self.login_dialog: Optional[LoginDialog] = None

        # File picker
        self.file_picker = ft.FilePicker(on_result=self.on_file_picked)
        self.page.overlay.append(self.file_picker)

        self.build_ui()

    def bind(self, controller: ChatScreenController):
        self.controller = controller

    def build_ui(self):
        self.loading = ft.ProgressRing(width=32, height=32, stroke_width=3, color=COLORS["accent"])

        self.messages_list = ft.ListView(
            expand=True,
            spacing=SPACING["md"],
            padding=ft.padding.symmetric(horizontal=SPACING["md"], vertical=SPACING["md"]),
            auto_scroll=True,
        )

        self.download_progress = ft.ProgressBar(value=0, color=COLORS["accent"], bgcolor=COLORS["divider"])

        self.message_input = ft.TextField(
            hint_text="Message",
            expand=True,
            multiline=True,
            min_lines=1,
            max_lines=5,
            text_size=FONT_SIZES["base"],
            border_radius=RADIUS["full"],
            on_change=lambda e: self.controller.on_text_changed(e.control.value or ""),
        )

        self.send_btn = ft.IconButton(
            icon=ft.Icons.SEND,
            icon_color=COLORS["accent"],
            tooltip="Send",
            disabled=True,
            on_click=lambda e: self.page.run_task(self.send_message),
        )

        # Tap picks from the gallery, long press opens the camera
        self.photo_picker_btn = ft.Container(
            content=ft.Icon(ft.Icons.PHOTO_LIBRARY, color=COLORS["accent"]),
            padding=SPACING["md"],
            tooltip="Photo (long press for camera)",
            on_click=lambda e: self.controller.pick_photo(),
            on_long_press=lambda e: self.controller.request_camera(),
        )

        self.main_view = ft.Column([
            ft.Container(
                content=ft.Stack([
                    self.messages_list,
                    ft.Container(content=self.loading, alignment=ft.alignment.center),
                ]),
                expand=True,
                bgcolor=COLORS["bg_secondary"],
            ),
            self.download_progress,
            ft.Container(
                content=ft.Row([self.photo_picker_btn, self.message_input, self.send_btn],
                               spacing=SPACING["md"],
                               vertical_alignment=ft.CrossAxisAlignment.END),
                padding=SPACING["md"],
                bgcolor=COLORS["bg_primary"],
            ),
        ], spacing=0, expand=True)

        self.view_finder = ft.Container(
            content=ft.Icon(ft.Icons.CAMERA_ALT, size=64, color=ft.Colors.WHITE54),
            alignment=ft.alignment.center,
            expand=True,
            bgcolor=COLORS["camera_bg"],
            rotate=ft.transform.Rotate(0, alignment=ft.alignment.center),
        )

        self.camera_view = ft.Column([
            self.view_finder,
            ft.Container(
                content=ft.IconButton(
                    icon=ft.Icons.CAMERA,
                    icon_size=48,
                    icon_color=ft.Colors.WHITE,
                    tooltip="Capture",
                    on_click=lambda e: self.page.run_task(self.controller.capture_photo),
                ),
                alignment=ft.alignment.center,
                bgcolor=COLORS["camera_bg"],
                padding=SPACING["xl"],
            ),
        ], spacing=0, expand=True, visible=False)

        self.page.appbar = ft.AppBar(
            title=ft.Text("Firechat"),
            bgcolor=COLORS["accent"],
            color=ft.Colors.WHITE,
            actions=[
                ft.PopupMenuButton(items=[
                    ft.PopupMenuItem(
                        text="Sign out",
                        on_click=lambda e: self.page.run_task(self.controller.sign_out),
                    ),
                ]),
            ],
        )
        self.page.add(ft.Stack([self.main_view, self.camera_view], expand=True))
        self.page.on_resized = self.on_resized

    def create_message_bubble(self, message: Message) -> ft.Control:
        if message.is_photo:
            body = ft.Row([
                ft.Image(src=message.photo_url, width=220, fit=ft.ImageFit.CONTAIN,
                         border_radius=RADIUS["md"]),
                ft.IconButton(
                    icon=ft.Icons.DELETE_OUTLINE,
                    tooltip="Delete photo",
                    on_click=lambda e, m=message: self.page.run_task(
                        self.controller.delete_photo, m.photo_url, m.key),
                ),
            ], vertical_alignment=ft.CrossAxisAlignment.START)
        else:
            body = ft.Text(message.text, size=FONT_SIZES["lg"], color=COLORS["text_primary"], selectable=True)

        return ft.Container(
            content=ft.Column([
                body,
                ft.Text(message.name, size=FONT_SIZES["sm"], color=COLORS["author"]),
            ], spacing=SPACING["sm"], tight=True),
            padding=SPACING["lg"],
            bgcolor=COLORS["message_bg"],
            border_radius=RADIUS["md"],
        )

    # Flet events
    async def send_message(self):
        try:
            await self.controller.send_text(self.message_input.value or "")
        except FirechatAPIError as ex:
            self.error_handler.handle_error(ex, "Send message")

    def on_file_picked(self, e: ft.FilePickerResultEvent):
        if not e.files:
            return
        self.page.run_task(self.controller.on_photo_picked, e.files[0].path)

    def on_resized(self, e):
        width, height = self.page.width, self.page.height
        self.controller.on_rotation_changed(ROTATION_90 if width > height else ROTATION_0)
        self.controller.on_preview_layout_changed(width, height)

    # ChatView
    def render_messages(self, messages: List[Message]):
        self.messages_list.controls = [self.create_message_bubble(m) for m in messages]
        self.page.update()

    def hide_loading(self):
        self.loading.visible = False
        self.page.update()

    def set_send_enabled(self, enabled: bool):
        self.send_btn.disabled = not enabled
        self.page.update()

    def clear_input(self):
        self.message_input.value = ""
        self.page.update()

    def set_max_length(self, max_length: int):
        self.message_input.max_length = max_length
        self.page.update()

    def set_progress(self, percent: int):
        self.download_progress.value = percent / 100
        self.page.update()

    def show_toast(self, message: str):
        self.error_handler.show_info_snackbar(message)

    def show_sign_in(self, providers: List[str]):
        if self.login_dialog is not None:
            self.login_dialog.close()
        self.login_dialog = LoginDialog(self.page, self.identity, providers, self.controller.on_sign_in_result,
                                        error_handler=self.error_handler)
        self.login_dialog.show()

    def finish(self):
        self.controller.close()
        self.page.window.destroy()

    def pick_image(self, mime_type: str):
        # Picker filters by extension, image/jpeg covers both spellings
        self.file_picker.pick_files(
            dialog_title="Complete action",
            file_type=ft.FilePickerFileType.CUSTOM,
            allowed_extensions=["jpg", "jpeg"],
            allow_multiple=False,
        )

    def show_camera(self):
        self.camera_view.visible = True
        self.main_view.visible = False
        self.page.update()

    def show_main(self):
        self.camera_view.visible = False
        self.main_view.visible = True
        self.page.update()

    def set_preview_transform(self, matrix: PreviewTransform):
        self.view_finder.rotate = ft.transform.Rotate(matrix.radians, alignment=ft.alignment.center)
        self.page.update()

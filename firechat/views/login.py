"""
Sign-in dialog
Email/password sign-in and registration plus Google sign-in
"""

from typing import Callable, List, Optional

import flet as ft
from flet.auth.providers import GoogleOAuthProvider

from firechat.api_client import FirechatAPIError
from firechat.config import settings
from firechat.error_handler import ErrorHandler
from firechat.services import IdentityProvider
from firechat.theme import COLORS, FONT_SIZES


class LoginDialog:
    """Modal sign-in flow. on_result(True) after sign-in, on_result(False) on cancel."""

    def __init__(self, page: ft.Page, identity: IdentityProvider, providers: List[str],
                 on_result: Callable[[bool], None], error_handler: Optional[ErrorHandler] = None):
        self.page = page
        self.error_handler = error_handler or ErrorHandler(page)
        self.identity = identity
        self.providers = providers
        self.on_result = on_result
        self.register_mode = False
        self.dialog: Optional[ft.AlertDialog] = None

        self.name_field = ft.TextField(label="Name", visible=False, border_radius=8)
        self.email_field = ft.TextField(
            label="Email",
            keyboard_type=ft.KeyboardType.EMAIL,
            autofocus=True,
            border_radius=8,
        )
        self.password_field = ft.TextField(
            label="Password",
            password=True,
            can_reveal_password=True,
            border_radius=8,
            on_submit=lambda e: self.page.run_task(self.handle_email),
        )
        self.error_text = ft.Text("", color=COLORS["error"], visible=False, size=FONT_SIZES["sm"])
        self.submit_btn = ft.ElevatedButton(
            "Sign in",
            on_click=lambda e: self.page.run_task(self.handle_email),
        )
        self.mode_btn = ft.TextButton("Don't have an account? Register", on_click=self.toggle_mode)

    def build(self) -> ft.AlertDialog:
        actions = [ft.TextButton("Cancel", on_click=self.cancel)]
        if "google" in self.providers:
            actions.append(ft.OutlinedButton("Sign in with Google", icon=ft.Icons.LOGIN,
                                             on_click=self.start_google))
        actions.append(self.submit_btn)

        email_controls = []
        if "email" in self.providers:
            email_controls = [self.name_field, self.email_field, self.password_field, self.mode_btn]

        self.dialog = ft.AlertDialog(
            modal=True,
            title=ft.Text("Firechat", size=FONT_SIZES["3xl"], weight=ft.FontWeight.BOLD,
                          color=COLORS["accent"]),
            content=ft.Column(email_controls + [self.error_text], tight=True, spacing=10, width=320),
            actions=actions,
            actions_alignment=ft.MainAxisAlignment.END,
        )
        return self.dialog

    def show(self):
        self.page.open(self.build())

    def close(self):
        if self.dialog is not None:
            self.page.close(self.dialog)

    def show_error(self, message: str):
        self.error_text.value = message
        self.error_text.visible = True
        self.submit_btn.disabled = False
        self.page.update()

    def toggle_mode(self, e=None):
        self.register_mode = not self.register_mode
        self.name_field.visible = self.register_mode
        self.submit_btn.text = "Register" if self.register_mode else "Sign in"
        self.mode_btn.text = ("Already have an account? Sign in" if self.register_mode
                              else "Don't have an account? Register")
        self.page.update()

    def cancel(self, e=None):
        self.close()
        self.on_result(False)

    async def handle_email(self):
        email = (self.email_field.value or "").strip()
        password = self.password_field.value or ""
        if not email or not password:
            self.show_error("Email and password required")
            return

        self.submit_btn.disabled = True
        self.error_text.visible = False
        self.page.update()
        try:
            if self.register_mode:
                await self.identity.sign_up_with_email((self.name_field.value or "").strip(), email, password)
            else:
                await self.identity.sign_in_with_email(email, password)
        except FirechatAPIError as ex:
            self.show_error(self.error_handler.handle_error(ex, "Sign in"))
            return

        self.close()
        self.on_result(True)

    def start_google(self, e=None):
        if not settings.GOOGLE_CLIENT_ID:
            self.show_error("Google sign-in is not configured")
            return
        provider = GoogleOAuthProvider(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_url=settings.GOOGLE_REDIRECT_URL,
        )
        self.page.on_login = lambda ev: self.page.run_task(self.finish_google, ev)
        self.page.login(provider, scope=["openid", "email", "profile"])

    async def finish_google(self, e: ft.LoginEvent):
        if e.error:
            self.show_error(f"Google sign-in failed: {e.error_description or e.error}")
            return
        try:
            await self.identity.sign_in_with_google(self.page.auth.token.access_token, token_type="access_token")
        except FirechatAPIError as ex:
            self.show_error(self.error_handler.handle_error(ex, "Google sign in"))
            return
        self.close()
        self.on_result(True)

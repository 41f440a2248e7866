"""
Error handling utilities for the Firechat client.
Provides error logging and short snackbar notices for the user.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

import flet as ft

logger = logging.getLogger(__name__)

# Keep only this many errors for the summary
MAX_RECENT_ERRORS = 10


class ErrorHandler:
    """Error log plus snackbar feedback for one page"""

    def __init__(self, page: ft.Page):
        self.page = page
        self.last_errors: List[Dict[str, Any]] = []

    def log_error(self, error: Exception, context: str = ""):
        """Log error with context and timestamp"""
        self.last_errors.append({
            "timestamp": datetime.now().isoformat(),
            "context": context,
            "type": type(error).__name__,
            "message": str(error),
        })
        if len(self.last_errors) > MAX_RECENT_ERRORS:
            self.last_errors.pop(0)
        logger.error(f"{context}: {type(error).__name__}: {error}")

    def _show_snackbar(self, message: str, icon, bgcolor, duration: int):
        snack = ft.SnackBar(
            content=ft.Row([
                ft.Icon(icon, color=ft.Colors.WHITE, size=20),
                ft.Text(message, color=ft.Colors.WHITE, size=14)
            ], spacing=8),
            bgcolor=bgcolor,
            duration=duration
        )
        self.page.overlay.append(snack)
        snack.open = True
        self.page.update()

    def show_error_snackbar(self, message: str, duration: int = 3000):
        self._show_snackbar(message, ft.Icons.ERROR_OUTLINE, ft.Colors.RED_600, duration)

    def show_info_snackbar(self, message: str, duration: int = 2000):
        """Short notice, the equivalent of a toast"""
        self._show_snackbar(message, ft.Icons.INFO_OUTLINE, ft.Colors.BLUE_600, duration)

    def handle_error(self, error: Exception, context: str = "") -> str:
        """Log an error and show a user-friendly message"""
        self.log_error(error, context)

        error_str = str(error).lower()
        if "timeout" in error_str or "connect" in error_str:
            message = "Network error. Please check your internet connection."
        elif "invalid_password" in error_str or "email_not_found" in error_str or "invalid_login" in error_str:
            message = "Wrong email or password."
        elif "permission denied" in error_str or "401" in error_str or "403" in error_str:
            message = "You don't have permission to perform this action."
        else:
            message = f"An error occurred: {str(error)[:100]}"

        self.show_error_snackbar(message)
        return message


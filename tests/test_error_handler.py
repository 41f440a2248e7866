#!/usr/bin/env python3
"""
Error handler tests with a mocked Flet page
"""

from unittest.mock import MagicMock

import flet as ft
import pytest

from firechat.api_client import FirechatAPIError
from firechat.error_handler import MAX_RECENT_ERRORS, ErrorHandler


@pytest.fixture
def page():
    mock_page = MagicMock()
    mock_page.overlay = []
    return mock_page


def snack_text(snack):
    return snack.content.controls[1].value


def test_info_snackbar_is_opened(page):
    ErrorHandler(page).show_info_snackbar("File deleted")

    snack = page.overlay[-1]
    assert isinstance(snack, ft.SnackBar)
    assert snack.open is True
    assert snack_text(snack) == "File deleted"
    page.update.assert_called_once()


@pytest.mark.parametrize("error,expected", [
    (FirechatAPIError("Request timeout. Please check your internet connection."), "Network error"),
    (FirechatAPIError("Sign in failed: INVALID_PASSWORD", 400), "Wrong email or password."),
    (FirechatAPIError("Write failed: Permission denied", 401), "You don't have permission"),
    (ValueError("something odd"), "An error occurred: something odd"),
])
def test_handle_error_shows_friendly_message(page, error, expected):
    message = ErrorHandler(page).handle_error(error, "Test")

    assert message.startswith(expected)
    assert snack_text(page.overlay[-1]) == message


def test_recent_errors_are_bounded(page):
    handler = ErrorHandler(page)

    for i in range(MAX_RECENT_ERRORS + 5):
        handler.log_error(RuntimeError(f"boom {i}"), "loop")

    assert len(handler.last_errors) == MAX_RECENT_ERRORS
    assert handler.last_errors[-1]["message"] == f"boom {MAX_RECENT_ERRORS + 4}"
    assert handler.last_errors[0]["type"] == "RuntimeError"

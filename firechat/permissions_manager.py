"""
Android Permissions Manager for Firechat
Handles runtime permission checks and requests for the camera flow
"""

import asyncio
import logging
import sys
from typing import Callable, List, Optional

from firechat.services import PermissionChecker

logger = logging.getLogger(__name__)


CAMERA = "android.permission.CAMERA"
READ_EXTERNAL_STORAGE = "android.permission.READ_EXTERNAL_STORAGE"
WRITE_EXTERNAL_STORAGE = "android.permission.WRITE_EXTERNAL_STORAGE"

# Everything the camera capture flow needs, requested as one group
REQUIRED_PERMISSIONS = [
    CAMERA,                  # For photo capture
    READ_EXTERNAL_STORAGE,   # For reading the captured file
    WRITE_EXTERNAL_STORAGE,  # For writing the capture file
]


class AndroidPermissions(PermissionChecker):
    """Runtime permissions through pyjnius. Off Android everything is granted."""

    def __init__(self, on_result: Optional[Callable[[int], None]] = None):
        # Receives the request code once the user answered the dialog
        self.on_result = on_result

    def is_granted(self, permission: str) -> bool:
        if sys.platform != "android":
            return True  # Assume granted on non-Android

        try:
            from jnius import autoclass

            PythonActivity = autoclass('org.kivy.android.PythonActivity')
            activity = PythonActivity.mActivity
            PackageManager = autoclass('android.content.pm.PackageManager')
            String = autoclass('java.lang.String')

            result = activity.checkSelfPermission(String(permission))
            return result == PackageManager.PERMISSION_GRANTED
        except (ImportError, AttributeError, RuntimeError, OSError) as e:
            logger.warning(f"Error checking permission {permission}: {e}")
            return False

    def request(self, permissions: List[str], request_code: int):
        if sys.platform != "android":
            logger.debug("Not on Android, skipping permission request")
            return

        from android.permissions import request_permissions

        loop = asyncio.get_running_loop()
        missing = [p for p in permissions if not self.is_granted(p)]
        logger.info(f"Requesting {len(missing)} permissions: {', '.join(missing)}")

        def on_permissions_result(perms, grants):
            # Called on the Java UI thread
            if self.on_result is not None:
                loop.call_soon_threadsafe(self.on_result, request_code)

        request_permissions(missing, on_permissions_result)


def get_granted_permissions(checker: PermissionChecker) -> List[str]:
    """Get list of all granted permissions from REQUIRED_PERMISSIONS."""
    return [perm for perm in REQUIRED_PERMISSIONS if checker.is_granted(perm)]

"""
Camera support for photo messages.
Preview rotation math, capture file naming and the Android capture device.
"""

import asyncio
import logging
import math
import os
import sys
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from firechat.config import RC_PHOTO_CAMERA
from firechat.services import CameraDevice

logger = logging.getLogger(__name__)

# Display rotation states, as reported by the device
ROTATION_0 = 0
ROTATION_90 = 1
ROTATION_180 = 2
ROTATION_270 = 3

ROTATION_DEGREES = {
    ROTATION_0: 0,
    ROTATION_90: 90,
    ROTATION_180: 180,
    ROTATION_270: 270,
}

RESULT_OK = -1


class CameraError(Exception):
    """Capture could not be completed"""


@dataclass(frozen=True)
class PreviewTransform:
    """Rotation of the preview surface about a pivot point"""
    degrees: float
    pivot_x: float
    pivot_y: float

    @property
    def radians(self) -> float:
        return math.radians(self.degrees)

    def matrix(self) -> Tuple[Tuple[float, float, float], ...]:
        """3x3 affine matrix: translate(pivot) * rotate * translate(-pivot)"""
        cos = _clean(math.cos(self.radians))
        sin = _clean(math.sin(self.radians))
        px, py = self.pivot_x, self.pivot_y
        return (
            (cos, -sin, px - cos * px + sin * py),
            (sin, cos, py - sin * px - cos * py),
            (0.0, 0.0, 1.0),
        )

    def map_point(self, x: float, y: float) -> Tuple[float, float]:
        (a, b, c), (d, e, f), _ = self.matrix()
        return a * x + b * y + c, d * x + e * y + f


def _clean(value: float) -> float:
    # cos(90deg) is 6e-17 in floating point
    return 0.0 if abs(value) < 1e-12 else value


def preview_transform(width: float, height: float, rotation: int) -> Optional[PreviewTransform]:
    """Transform that keeps the preview upright for a display rotation.

    Returns None for an unknown rotation state, in which case the current
    transform is left alone.
    """
    degrees = ROTATION_DEGREES.get(rotation)
    if degrees is None:
        return None
    return PreviewTransform(degrees=-float(degrees), pivot_x=width / 2.0, pivot_y=height / 2.0)


def create_image_file(directory: Path, now: Optional[datetime] = None) -> Path:
    """Create an empty JPEG_<timestamp>_*.jpg file for a capture"""
    directory.mkdir(parents=True, exist_ok=True)
    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    fd, name = tempfile.mkstemp(prefix=f"JPEG_{timestamp}_", suffix=".jpg", dir=str(directory))
    # Only the path is needed, the camera writes the bytes
    os.close(fd)
    return Path(name)


class AndroidCamera(CameraDevice):
    """Captures through the system camera app via pyjnius.

    The camera app shows its own live preview; the picture is written to the
    file passed to take_picture.
    """

    def __init__(self):
        self._pending: Optional[asyncio.Future] = None

    def start_preview(self):
        if sys.platform != "android":
            raise CameraError("Camera is only available on Android")
        logger.debug("Camera preview handled by the system camera app")

    async def take_picture(self, path: Path) -> Path:
        if sys.platform != "android":
            raise CameraError("Camera is only available on Android")

        from jnius import autoclass, cast
        from android import activity

        PythonActivity = autoclass('org.kivy.android.PythonActivity')
        Intent = autoclass('android.content.Intent')
        MediaStore = autoclass('android.provider.MediaStore')
        FileProvider = autoclass('androidx.core.content.FileProvider')
        File = autoclass('java.io.File')

        current = PythonActivity.mActivity
        uri = FileProvider.getUriForFile(
            current, current.getPackageName() + ".fileprovider", File(str(path))
        )
        intent = Intent(MediaStore.ACTION_IMAGE_CAPTURE)
        intent.putExtra(MediaStore.EXTRA_OUTPUT, cast('android.os.Parcelable', uri))

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending = future

        def on_activity_result(request_code, result_code, data):
            if request_code != RC_PHOTO_CAMERA:
                return
            activity.unbind(on_activity_result=on_activity_result)
            # Called on the Java UI thread
            loop.call_soon_threadsafe(self._resolve, future, result_code == RESULT_OK, path)

        activity.bind(on_activity_result=on_activity_result)
        current.startActivityForResult(intent, RC_PHOTO_CAMERA)
        return await future

    def _resolve(self, future: asyncio.Future, ok: bool, path: Path):
        self._pending = None
        if future.done():
            return
        if ok:
            future.set_result(path)
        else:
            future.set_exception(CameraError("Capture cancelled"))

    def stop(self):
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

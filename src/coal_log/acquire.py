"""Image acquisition: file upload, single-frame camera capture, pass-through crop."""

import hashlib
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

import cv2

from .errors import CameraError, ImageLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageHandle:
    """Opaque image bytes plus where they came from. Content is never validated."""
    data: bytes
    source: str
    media_type: str = "application/octet-stream"

    @property
    def digest(self) -> str:
        """MD5 of the image bytes, used to identify images in logs."""
        return hashlib.md5(self.data).hexdigest()


def load_image_file(path: Path) -> ImageHandle:
    """
    Read an image file as uploaded by the user.

    Args:
        path: Image path (any format)

    Returns:
        ImageHandle with the raw file bytes
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error(f"Failed to read image {path}: {e}")
        raise ImageLoadError(f"Could not read image {path}: {e}") from e
    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    logger.info(f"Loaded image {path.name} ({len(data)} bytes, {media_type})")
    return ImageHandle(data=data, source=str(path), media_type=media_type)


def capture_from_camera(device_index: int = 0) -> ImageHandle:
    """
    Grab one frame from a camera and encode it as JPEG.

    Args:
        device_index: OpenCV camera index

    Returns:
        ImageHandle holding the JPEG bytes

    Raises:
        CameraError: If the camera cannot be opened or yields no frame
    """
    capture = cv2.VideoCapture(device_index)
    try:
        if not capture.isOpened():
            raise CameraError("Unable to access camera. Please check permissions.")

        ok, frame = capture.read()
        if not ok or frame is None:
            raise CameraError(f"Camera {device_index} returned no frame")

        ok, encoded = cv2.imencode('.jpg', frame)
        if not ok:
            raise CameraError("Failed to encode captured frame as JPEG")
    except CameraError as e:
        logger.error(f"Camera capture failed: {e}")
        raise
    finally:
        # Stop the stream whether or not a frame was captured
        capture.release()

    data = encoded.tobytes()
    logger.info(f"Captured frame from camera {device_index} ({len(data)} bytes)")
    return ImageHandle(data=data, source=f"camera:{device_index}", media_type="image/jpeg")


def crop_image(image: ImageHandle) -> ImageHandle:
    """Crop step. The image is passed through unchanged."""
    return image

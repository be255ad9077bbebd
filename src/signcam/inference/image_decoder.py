"""
Image Decoder
=============

Dedicated module for decoding JPEG frames into RGB numpy arrays.

Design Rules:
    - This is the ONLY place in the codebase that decodes images
    - Validates shape and dtype
    - Fails fast on corrupt frames with ImageDecodeError
    - Rejects frames whose scan data stops early, even though libjpeg
      would pad and decode them
    - Returns RGB channel order at the classifier's fixed size
"""

import logging

import cv2
import numpy as np

from signcam.exceptions import ImageDecodeError
from signcam.inference.jpeg_scan import check_scan_complete
from signcam.stream.frame import JpegFrame


logger = logging.getLogger(__name__)


def decode_frame_rgb(frame: JpegFrame, width: int, height: int) -> np.ndarray:
    """
    Decode a JPEG frame to an RGB array of the requested size.

    Frames whose size differs from (width, height) are resized with
    area interpolation.

    Args:
        frame: Frame holding JPEG bytes
        width: Output width in pixels
        height: Output height in pixels

    Returns:
        RGB image as np.ndarray (height, width, 3), dtype=uint8

    Raises:
        ImageDecodeError: If decoding fails or image is invalid
    """
    if not frame.data:
        raise ImageDecodeError(f"Frame {frame.frame_id} is empty")

    try:
        check_scan_complete(frame.data)
    except ImageDecodeError as e:
        raise ImageDecodeError(f"Incomplete JPEG frame {frame.frame_id}: {e}") from e

    nparr = np.frombuffer(frame.data, np.uint8)

    try:
        bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise ImageDecodeError(
            f"cv2.imdecode failed for frame {frame.frame_id}: {e}"
        ) from e

    if bgr is None:
        raise ImageDecodeError(
            f"Failed to decode frame {frame.frame_id}: cv2.imdecode returned None"
        )

    if bgr.ndim != 3 or bgr.shape[2] != 3:
        raise ImageDecodeError(
            f"Invalid image shape for frame {frame.frame_id}: {bgr.shape}"
        )

    if bgr.dtype != np.uint8:
        raise ImageDecodeError(
            f"Invalid dtype for frame {frame.frame_id}: {bgr.dtype}"
        )

    if bgr.shape[0] != height or bgr.shape[1] != width:
        bgr = cv2.resize(bgr, (width, height), interpolation=cv2.INTER_AREA)

    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


"""Shrinks uploaded photos into small inline JPEG data URLs."""

import base64
import io
import logging

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

# Roughly 15-30 KB once base64 encoded.
MAX_WIDTH = 300
MAX_HEIGHT = 200
JPEG_QUALITY = 38

DATA_URL_PREFIX = "data:image/jpeg;base64,"


def fit_within(width: int, height: int, max_w: int, max_h: int) -> tuple[int, int]:
    """Target size keeping the aspect ratio. Never upscales."""
    ratio = min(max_w / width, max_h / height, 1)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def compress_image(
    raw: bytes,
    max_w: int = MAX_WIDTH,
    max_h: int = MAX_HEIGHT,
    quality: int = JPEG_QUALITY,
) -> str:
    """
    Re-encodes an image as a downscaled JPEG data URL.

    Args:
        raw (bytes): The original image file contents, any format Pillow reads.
        max_w (int): Maximum output width in pixels.
        max_h (int): Maximum output height in pixels.
        quality (int): JPEG quality, 1-95.

    Returns:
        str: "data:image/jpeg;base64,..." ready to store as a day photo.

    Raises:
        ValueError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(raw)) as image:
            image = ImageOps.exif_transpose(image)
            size = fit_within(image.width, image.height, max_w, max_h)
            resized = image.convert("RGB").resize(size, Image.LANCZOS)
    except (OSError, Image.DecompressionBombError) as exc:
        raise ValueError("Unreadable image") from exc

    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=quality, optimize=True)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    logger.debug("Compressed photo to %dx%d, %d chars", size[0], size[1], len(encoded))
    return DATA_URL_PREFIX + encoded

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


import base64
import io
import unittest

from PIL import Image as PIL_Image

from integrations import image_utils


def _png_bytes(width, height, mode="RGB"):
    buffer = io.BytesIO()
    PIL_Image.new(mode, (width, height)).save(buffer, format="PNG")
    return buffer.getvalue()


class ImageUtilsTest(unittest.TestCase):

    def test_fit_within_downscales_keeping_aspect(self):
        """Tests that large images shrink to fit the bounding box."""
        self.assertEqual(image_utils.fit_within(1200, 800, 300, 200), (300, 200))
        self.assertEqual(image_utils.fit_within(800, 1200, 300, 200), (133, 200))

    def test_fit_within_never_upscales(self):
        """Tests that small images keep their size."""
        self.assertEqual(image_utils.fit_within(100, 50, 300, 200), (100, 50))

    def test_compress_image_returns_jpeg_data_url(self):
        """Tests the output is a downscaled JPEG data URL."""
        result = image_utils.compress_image(_png_bytes(1600, 900))

        self.assertTrue(result.startswith(image_utils.DATA_URL_PREFIX))
        raw = base64.b64decode(result[len(image_utils.DATA_URL_PREFIX):])
        with PIL_Image.open(io.BytesIO(raw)) as image:
            self.assertEqual(image.format, "JPEG")
            self.assertLessEqual(image.width, 300)
            self.assertLessEqual(image.height, 200)

    def test_compress_image_converts_transparency(self):
        """Tests that RGBA input can still be written as JPEG."""
        result = image_utils.compress_image(_png_bytes(40, 40, mode="RGBA"))
        self.assertTrue(result.startswith(image_utils.DATA_URL_PREFIX))

    def test_compress_image_rejects_non_images(self):
        """Tests that unreadable bytes raise ValueError."""
        with self.assertRaises(ValueError):
            image_utils.compress_image(b"definitely not an image")


if __name__ == "__main__":
    unittest.main()

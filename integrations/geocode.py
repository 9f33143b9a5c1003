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


"""Reverse geocoding through OpenStreetMap Nominatim (no API key needed)."""

import logging

import requests

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"
REQUEST_TIMEOUT = 10  # seconds
UNKNOWN_LOCATION = "Unknown location"

# Most specific first.
_LOCAL_FIELDS = ("suburb", "city_district", "city", "town", "village", "county")
_REGION_FIELDS = ("state", "country")


def format_place(address: dict) -> str:
    """Turns a Nominatim address block into "Locality, Region"."""
    local = next((address[f] for f in _LOCAL_FIELDS if address.get(f)), "Unknown")
    region = next((address[f] for f in _REGION_FIELDS if address.get(f)), "")
    return f"{local}, {region}" if region else local


def reverse_geocode(
    lat: float,
    lng: float,
    *,
    url: str = NOMINATIM_URL,
    timeout: float = REQUEST_TIMEOUT,
) -> str:
    """
    Looks up a display name for a coordinate pair.

    Best effort: any network or decoding failure yields UNKNOWN_LOCATION.
    """
    try:
        response = requests.get(
            url,
            params={"lat": lat, "lon": lng, "format": "json", "zoom": 14},
            headers={"Accept-Language": "en", "User-Agent": "jetjot/0.1"},
            timeout=timeout,
        )
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Reverse geocoding failed for %s,%s: %s", lat, lng, exc)
        return UNKNOWN_LOCATION
    return format_place(payload.get("address") or {})

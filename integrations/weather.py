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


"""
Daily weather for a sprint's date range from Open-Meteo.

Past days come from the archive API and today onwards from the forecast
API; both are free and keyless.
"""

import logging
from datetime import date, timedelta
from typing import Dict, Optional

import requests

from shared.sprint_types import day_key, parse_day

logger = logging.getLogger(__name__)

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"
REQUEST_TIMEOUT = 10  # seconds

# Centre of India.
DEFAULT_LATITUDE = 22.5937
DEFAULT_LONGITUDE = 78.9629
DEFAULT_TIMEZONE = "Asia/Kolkata"

# WMO weather interpretation codes.
WMO_CONDITIONS = {
    0: "clear",
    1: "mainly clear",
    2: "partly cloudy",
    3: "overcast",
    45: "fog",
    48: "fog",
    51: "drizzle",
    53: "drizzle",
    55: "rain",
    56: "rain",
    57: "rain",
    61: "rain",
    63: "rain",
    65: "rain",
    66: "rain",
    67: "rain",
    71: "snow",
    73: "snow",
    75: "snow",
    77: "snow",
    80: "showers",
    81: "rain",
    82: "thunderstorm",
    85: "snow showers",
    86: "snow showers",
    95: "thunderstorm",
    96: "thunderstorm",
    99: "thunderstorm",
}


def wmo_condition(code: Optional[int]) -> str:
    """Maps a WMO code to a label, falling back to the nearest lower code."""
    if code is None:
        return "unknown"
    if code in WMO_CONDITIONS:
        return WMO_CONDITIONS[code]
    lower = [known for known in WMO_CONDITIONS if known <= code]
    return WMO_CONDITIONS[max(lower)] if lower else "unknown"


def parse_daily(payload: dict) -> Dict[str, dict]:
    daily = payload.get("daily") or {}
    results = {}
    for i, date_key in enumerate(daily.get("time") or []):
        results[date_key] = {
            "condition": wmo_condition(daily["weathercode"][i]),
            "max": round(daily["temperature_2m_max"][i]),
            "min": round(daily["temperature_2m_min"][i]),
        }
    return results


def _fetch_range(url: str, params: dict, start: str, end: str, timeout: float) -> Dict[str, dict]:
    try:
        response = requests.get(
            url, params={**params, "start_date": start, "end_date": end}, timeout=timeout
        )
        response.raise_for_status()
        return parse_daily(response.json())
    except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
        logger.warning("Weather fetch from %s failed: %s", url, exc)
        return {}


def fetch_sprint_weather(
    start: "date | str",
    end: "date | str",
    lat: float = DEFAULT_LATITUDE,
    lng: float = DEFAULT_LONGITUDE,
    *,
    today: Optional[date] = None,
    forecast_url: str = FORECAST_URL,
    archive_url: str = ARCHIVE_URL,
    timezone: str = DEFAULT_TIMEZONE,
    timeout: float = REQUEST_TIMEOUT,
) -> Dict[str, dict]:
    """
    Returns {"YYYY-MM-DD": {"condition", "max", "min"}} for the range.

    Days either endpoint cannot answer are simply missing from the result.
    """
    first, last = parse_day(start), parse_day(end)
    today = today or date.today()
    yesterday = today - timedelta(days=1)
    params = {
        "latitude": lat,
        "longitude": lng,
        "daily": "weathercode,temperature_2m_max,temperature_2m_min",
        "timezone": timezone,
    }

    results: Dict[str, dict] = {}
    if first <= yesterday:
        archive_end = min(last, yesterday)
        results.update(
            _fetch_range(archive_url, params, day_key(first), day_key(archive_end), timeout)
        )
    if last >= today:
        forecast_start = max(first, today)
        results.update(
            _fetch_range(forecast_url, params, day_key(forecast_start), day_key(last), timeout)
        )
    return results

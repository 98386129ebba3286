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
"""Helpers for moving data between Python and the camelCase JSON clients use."""

import re
from datetime import datetime, timezone
from typing import Any

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def convert_keys(data: Any, direction: str) -> Any:
    """
    Recursively converts dictionary keys between camelCase and snake_case.

    Args:
        data: A dict, list or scalar value.
        direction (str): Either "camel_to_snake" or "snake_to_camel".

    Returns:
        A copy of `data` with every dictionary key converted.
    """
    if direction == "camel_to_snake":
        convert = camel_to_snake
    elif direction == "snake_to_camel":
        convert = snake_to_camel
    else:
        raise ValueError(f"Unknown key conversion direction: {direction}")

    def _convert(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                convert(k) if isinstance(k, str) else k: _convert(v)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [_convert(item) for item in value]
        return value

    return _convert(data)


def to_iso(value: Any) -> Any:
    """Returns an ISO-8601 string for datetimes, leaving other values untouched."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return value


def timestamps_to_iso(data: Any) -> Any:
    """Recursively converts every datetime in `data` to an ISO-8601 string."""
    if isinstance(data, dict):
        return {k: timestamps_to_iso(v) for k, v in data.items()}
    if isinstance(data, list):
        return [timestamps_to_iso(item) for item in data]
    return to_iso(data)


def parse_datetime(value: Any) -> datetime | None:
    """Parses an ISO string or datetime into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported date value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)

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
"""Helpers shared by the action handlers."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Type, TypeVar

from firebase_functions import https_fn
from pydantic import BaseModel, ValidationError

from backend.auth import AuthClient
from backend.db import DbClient
from backend.storage import StorageClient
from shared.api import CallerContext
from shared.json_utils import convert_keys, timestamps_to_iso
from shared.schemas import first_error_message

FormT = TypeVar("FormT", bound=BaseModel)

ErrorCode = https_fn.FunctionsErrorCode


@dataclass
class Clients:
    """The backends an action handler may talk to."""

    db: DbClient
    auth: AuthClient
    storage: StorageClient
    upload_url_expiry_seconds: int = 900


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def error(code: ErrorCode, message: str) -> https_fn.HttpsError:
    return https_fn.HttpsError(code, message)


def require_caller(
    caller: Optional[CallerContext],
    message: str = "Debes estar autenticado.",
    require_email: bool = False,
) -> CallerContext:
    """Returns the caller, raising `unauthenticated` when there is none."""
    if caller is None or not caller.uid:
        raise error(ErrorCode.UNAUTHENTICATED, message)
    if require_email and not caller.email:
        raise error(ErrorCode.UNAUTHENTICATED, message)
    return caller


def require_admin(caller: Optional[CallerContext], message: str) -> CallerContext:
    if caller is None or not caller.is_admin:
        raise error(ErrorCode.PERMISSION_DENIED, message)
    return caller


def require_string(data: dict, key: str, message: str) -> str:
    """Returns a stripped, non-empty string field or raises `invalid-argument`."""
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise error(ErrorCode.INVALID_ARGUMENT, message)
    return value.strip()


def require_dict(data: dict, key: str, message: str) -> dict:
    value = data.get(key)
    if not isinstance(value, dict):
        raise error(ErrorCode.INVALID_ARGUMENT, message)
    return value


def parse_form(form_class: Type[FormT], payload: dict) -> FormT:
    """Validates a camelCase payload against a form schema."""
    try:
        return form_class.model_validate(convert_keys(payload, "camel_to_snake"))
    except ValidationError as e:
        raise error(ErrorCode.INVALID_ARGUMENT, first_error_message(e))


def to_client(doc_id: Optional[str], data: dict) -> dict:
    """Shapes a stored document for the client: adds `id`, ISO timestamps."""
    result: dict[str, Any] = {}
    if doc_id is not None:
        result["id"] = doc_id
    result.update(timestamps_to_iso(data))
    return result


def sort_key_timestamp(value: Any) -> float:
    """Sort key for optional datetimes; missing values sort first."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return float("-inf")

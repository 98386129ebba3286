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
"""Presigned upload URLs for bike photos, ownership documents and sponsor logos."""

import re
import uuid
from dataclasses import asdict
from typing import Optional
from urllib.parse import unquote, urlparse

from firebase_functions import logger

from actions.common import (
    Clients,
    ErrorCode,
    error,
    require_caller,
    require_string,
)
from shared.api import CallerContext, MessageResult, UploadUrlResult
from shared.constants import MAX_FILE_NAME_LENGTH
from shared.json_utils import convert_keys
from shared.types import UploadKind

UPLOAD_FOLDERS = {
    UploadKind.BIKE_PHOTO: "bike_images",
    UploadKind.OWNERSHIP_DOCUMENT: "bike_documents",
    UploadKind.TRANSFER_DOCUMENT: "transfer_documents",
    UploadKind.SPONSOR_LOGO: "sponsors",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_UNSAFE_FILE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_file_name(file_name: str) -> str:
    """Replaces characters that are awkward in object paths and caps the length."""
    cleaned = _UNSAFE_FILE_NAME_CHARS.sub("_", file_name.strip()).strip("._")
    return (cleaned or "archivo")[:MAX_FILE_NAME_LENGTH]


def get_path_from_storage_url(download_url: str) -> Optional[str]:
    """
    Extracts the object path from a Firebase Storage download URL.

    `https://firebasestorage.googleapis.com/v0/b/<bucket>/o/bike_images%2Fa.jpg?alt=media`
    yields `bike_images/a.jpg`. Returns None for anything else.
    """
    if not isinstance(download_url, str) or not download_url:
        return None
    try:
        parsed = urlparse(download_url)
    except ValueError:
        return None
    _, separator, encoded_path = parsed.path.partition("/o/")
    if not separator or not encoded_path:
        return None
    return unquote(encoded_path)


def get_upload_url(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    caller = require_caller(caller, "Debes estar autenticado para subir archivos.")
    kind = data.get("kind")
    if not isinstance(kind, str) or kind not in UPLOAD_FOLDERS:
        raise error(ErrorCode.INVALID_ARGUMENT, "Tipo de archivo inválido.")
    kind = UploadKind(kind)
    if kind == UploadKind.SPONSOR_LOGO and not caller.is_admin:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "Solo los administradores pueden subir logotipos de patrocinadores.",
        )

    file_name = require_string(data, "fileName", "Se requiere el nombre del archivo.")
    content_type = data.get("contentType") or DEFAULT_CONTENT_TYPE
    storage_path = (
        f"{UPLOAD_FOLDERS[kind]}/{caller.uid}/"
        f"{uuid.uuid4().hex}-{safe_file_name(file_name)}"
    )
    upload_url = clients.storage.presign_put(
        storage_path, content_type, expires_in=clients.upload_url_expiry_seconds
    )
    logger.info(f"Issued {kind} upload URL for {caller.uid}: {storage_path}")
    result = UploadUrlResult(upload_url=upload_url, storage_path=storage_path)
    return convert_keys(asdict(result), "snake_to_camel")


def delete_uploaded_file(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """Deletes an uploaded object by path or download URL; only its uploader or an admin may."""
    caller = require_caller(caller, "Debes estar autenticado para eliminar archivos.")
    storage_path = data.get("storagePath") or get_path_from_storage_url(
        data.get("url") or ""
    )
    if not isinstance(storage_path, str) or not storage_path:
        raise error(
            ErrorCode.INVALID_ARGUMENT, "Se requiere la ruta o URL del archivo."
        )

    parts = storage_path.split("/")
    owned = len(parts) > 2 and parts[1] == caller.uid
    if not owned and not caller.is_admin:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "No tienes permiso para eliminar este archivo.",
        )
    clients.storage.delete(storage_path)
    return asdict(MessageResult(message="Archivo eliminado exitosamente."))

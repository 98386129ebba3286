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
"""Editable homepage content."""

from dataclasses import asdict
from typing import Optional

from actions.common import Clients, ErrorCode, error, require_admin, to_client, utc_now
from shared.api import CallerContext, MessageResult


def update_homepage_content(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    require_admin(
        caller,
        "Solo los administradores pueden actualizar el contenido de la página principal.",
    )
    if not isinstance(data, dict) or not data:
        raise error(ErrorCode.INVALID_ARGUMENT, "Faltan datos de contenido.")

    content = {key: value for key, value in data.items() if key != "lastUpdated"}
    content["lastUpdated"] = utc_now()
    clients.db.update_homepage_content(content)
    return asdict(
        MessageResult(
            message="Contenido de la página principal actualizado exitosamente."
        )
    )


def get_homepage_content(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> Optional[dict]:
    content = clients.db.get_homepage_content()
    if content is None:
        return None
    return to_client(None, content)

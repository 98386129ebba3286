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

# Cloud functions for the BiciRegistro backend.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
from typing import Optional

# Third-party library imports
from firebase_admin import initialize_app
from firebase_functions import https_fn, logger, options

# Local application imports
from actions import dispatch, users
from backend.config import get_settings
from backend.dependencies import get_clients
from shared.api import CallerContext

settings = get_settings()

initialize_app()
options.set_global_options(region=settings.functions_region)


def _caller_from_request(req: https_fn.CallableRequest) -> Optional[CallerContext]:
    """Builds the caller context from the verified auth data, if any."""
    if req.auth is None or not req.auth.uid:
        return None
    return CallerContext(uid=req.auth.uid, token=dict(req.auth.token or {}))


@https_fn.on_call(
    cors=options.CorsOptions(
        cors_origins=settings.allowed_origins, cors_methods=["post"]
    ),
    enforce_app_check=settings.enforce_app_check,
    memory=options.MemoryOption.MB_512,
)
def api(req: https_fn.CallableRequest):
    """
    Single entry point for every client action.

    Args:
        req (https_fn.CallableRequest): The request, whose data is
            `{"action": str, "data": dict}`.

    Returns:
        Whatever the action's handler returns, already JSON-serializable.
    """
    payload = req.data if isinstance(req.data, dict) else {}
    action = payload.get("action")
    caller = _caller_from_request(req)
    logger.info(f"api action '{action}' by {caller.uid if caller else 'anonymous'}")
    return dispatch(action, payload.get("data"), caller, get_clients())


@https_fn.on_call(
    cors=options.CorsOptions(
        cors_origins=settings.allowed_origins, cors_methods=["post"]
    ),
    enforce_app_check=settings.enforce_app_check,
)
def set_admin(req: https_fn.CallableRequest) -> dict:
    """
    Grants admin rights to the user with the given email.

    Anyone may call this until the first admin exists; after that only admins.
    """
    payload = req.data if isinstance(req.data, dict) else {}
    clients = get_clients()
    caller = _caller_from_request(req)
    try:
        return users.set_admin(payload, caller, clients)
    except https_fn.HttpsError:
        raise
    except Exception as e:
        logger.error(f"Error setting admin: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Ocurrió un error inesperado al asignar el administrador.",
        )

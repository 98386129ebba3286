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
Action handlers behind the single `api` callable.

Every handler takes the request data, the caller (None when the request is
unauthenticated) and the backend clients, and returns a JSON-serializable
value. Coded failures are raised as `https_fn.HttpsError`.
"""

from typing import Any, Callable, Optional

from firebase_functions import https_fn, logger
from google.api_core import exceptions

from actions import bikes, homepage, rides, transfers, uploads, users
from actions.common import Clients, ErrorCode, error
from shared.api import CallerContext

Handler = Callable[[dict, Optional[CallerContext], Clients], Any]

ACTIONS: dict[str, Handler] = {
    "createBike": bikes.create_bike,
    "getMyBikes": bikes.get_my_bikes,
    "getPublicBikeBySerial": bikes.get_public_bike_by_serial,
    "updateBike": bikes.update_bike,
    "reportBikeStolen": bikes.report_bike_stolen,
    "markBikeRecovered": bikes.mark_bike_recovered,
    "getShopRegisteredBikes": bikes.get_shop_registered_bikes,
    "initiateTransferRequest": transfers.initiate_transfer_request,
    "respondToTransferRequest": transfers.respond_to_transfer_request,
    "getUserTransferRequests": transfers.get_user_transfer_requests,
    "updateUserRole": users.update_user_role,
    "deleteUserAccount": users.delete_user_account,
    "createAccount": users.create_account,
    "createUserProfile": users.create_user_profile,
    "updateUserProfile": users.update_user_profile,
    "getShopAnalytics": users.get_shop_analytics,
    "getNgoAnalytics": users.get_ngo_analytics,
    "listUsers": users.list_users,
    "getUserProfileByEmail": users.get_user_profile_by_email,
    "updateHomepageContent": homepage.update_homepage_content,
    "getHomepageContent": homepage.get_homepage_content,
    "createOrUpdateRide": rides.create_or_update_ride,
    "deleteRide": rides.delete_ride,
    "getPublicRides": rides.get_public_rides,
    "getOrganizerRides": rides.get_organizer_rides,
    "getRideById": rides.get_ride_by_id,
    "getUploadUrl": uploads.get_upload_url,
    "deleteUploadedFile": uploads.delete_uploaded_file,
}


def _unwrap(data: Any) -> dict:
    """Accepts `{...}` as well as the `{"data": {...}}` shape older clients send."""
    if not isinstance(data, dict):
        return {}
    nested = data.get("data")
    if len(data) == 1 and isinstance(nested, dict):
        return nested
    return data


def dispatch(
    action: Any, data: Any, caller: Optional[CallerContext], clients: Clients
) -> Any:
    """
    Runs the handler registered for `action`.

    Raises:
        https_fn.HttpsError: `not-found` for unknown actions, the handler's own
            coded error, `resource-exhausted` on Google API quota errors, or
            `internal` for anything else.
    """
    handler = ACTIONS.get(action) if isinstance(action, str) else None
    if handler is None:
        raise error(ErrorCode.NOT_FOUND, "No se encontró la acción solicitada.")

    try:
        return handler(_unwrap(data), caller, clients)
    except https_fn.HttpsError:
        raise
    except exceptions.TooManyRequests as e:
        logger.error(f"Quota exceeded while running '{action}': {e}")
        raise error(
            ErrorCode.RESOURCE_EXHAUSTED,
            "Se excedió la cuota del servicio. Intenta de nuevo más tarde.",
        )
    except Exception as e:
        logger.error(f"Error running action '{action}': {e}")
        raise error(
            ErrorCode.INTERNAL, f"Ocurrió un error inesperado al ejecutar {action}."
        )

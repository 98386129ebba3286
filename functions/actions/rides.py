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
"""Group rides and events published by shops and NGOs."""

from dataclasses import asdict
from typing import Optional

from firebase_functions import logger

from actions.common import (
    Clients,
    ErrorCode,
    error,
    parse_form,
    require_caller,
    require_dict,
    require_string,
    sort_key_timestamp,
    to_client,
    utc_now,
)
from shared.api import CallerContext, MessageResult, RideResult
from shared.constants import DEFAULT_ORGANIZER_NAME
from shared.json_utils import convert_keys, parse_datetime
from shared.schemas import RideForm

PUBLIC_RIDE_FILTERS = ("country", "state", "modality", "level")


def ride_to_json(ride_id: str, ride: dict) -> dict:
    """Shapes a stored ride for the client, reading legacy NGO-only fields."""
    ride_json = to_client(ride_id, ride)
    ride_json["organizerId"] = ride.get("organizerId") or ride.get("ngoId")
    ride_json["organizerName"] = ride.get("organizerName") or ride.get("ngoName")
    ride_json["organizerLogoUrl"] = ride.get("organizerLogoUrl") or ride.get(
        "ngoLogoUrl"
    )
    for legacy_key in ("ngoId", "ngoName", "ngoLogoUrl"):
        ride_json.pop(legacy_key, None)
    return ride_json


def create_or_update_ride(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """
    Creates a ride, or updates one when `rideId` is given.

    Only the organizer who created a ride may update it. The organizer name
    is copied from the organizer's shop or NGO profile.
    """
    caller = require_caller(caller, "Debes estar autenticado para gestionar eventos.")
    ride_payload = require_dict(data, "rideData", "Faltan datos del evento.")

    organizer = clients.db.get_user(caller.uid)
    if organizer is None:
        raise error(ErrorCode.NOT_FOUND, "Perfil del organizador no encontrado.")

    form = parse_form(RideForm, ride_payload)
    ride = convert_keys(form.model_dump(), "snake_to_camel")
    ride["rideDate"] = parse_datetime(form.ride_date)
    ride["meetingPointMapsLink"] = form.meeting_point_maps_link or None
    ride["modality"] = form.modality or None
    ride.update(
        {
            "organizerId": caller.uid,
            "organizerName": organizer.get("shopName")
            or organizer.get("ngoName")
            or DEFAULT_ORGANIZER_NAME,
            "organizerLogoUrl": organizer.get("logoUrl") or "",
            "updatedAt": utc_now(),
        }
    )

    ride_id = data.get("rideId")
    if ride_id:
        existing = clients.db.get_ride(ride_id)
        if existing is None or existing.get("organizerId") != caller.uid:
            raise error(
                ErrorCode.PERMISSION_DENIED,
                "No tienes permiso para editar este evento.",
            )
        clients.db.update_ride(ride_id, ride)
        message = "Evento actualizado exitosamente."
    else:
        ride["createdAt"] = ride["updatedAt"]
        ride_id = clients.db.create_ride(ride)
        message = "Evento creado exitosamente."

    logger.info(f"Ride {ride_id} saved by organizer {caller.uid}")
    result = RideResult(ride_id=ride_id, message=message)
    return convert_keys(asdict(result), "snake_to_camel")


def delete_ride(data: dict, caller: Optional[CallerContext], clients: Clients) -> dict:
    caller = require_caller(caller, "Debes estar autenticado para gestionar eventos.")
    ride_id = require_string(data, "rideId", "Se requiere un rideId válido.")
    ride = clients.db.get_ride(ride_id)
    if ride is None or (ride.get("organizerId") or ride.get("ngoId")) != caller.uid:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "No tienes permiso para eliminar este evento.",
        )
    clients.db.delete_ride(ride_id)
    return asdict(MessageResult(message="Evento eliminado exitosamente."))


def get_public_rides(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """Upcoming rides, soonest first, optionally filtered by location, modality or level."""
    rides = clients.db.list_rides(from_date=utc_now())
    filters = {
        key: data[key]
        for key in PUBLIC_RIDE_FILTERS
        if isinstance(data.get(key), str) and data[key]
    }
    rides = [
        (ride_id, ride)
        for ride_id, ride in rides
        if all(ride.get(key) == value for key, value in filters.items())
    ]
    rides.sort(key=lambda item: sort_key_timestamp(parse_datetime(item[1].get("rideDate"))))
    return {"rides": [ride_to_json(ride_id, ride) for ride_id, ride in rides]}


def get_organizer_rides(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    organizer_id = require_string(
        data, "organizerId", "Se requiere un organizerId válido."
    )
    rides = clients.db.list_rides(organizer_id=organizer_id)
    rides.sort(
        key=lambda item: sort_key_timestamp(parse_datetime(item[1].get("rideDate"))),
        reverse=True,
    )
    return {"rides": [ride_to_json(ride_id, ride) for ride_id, ride in rides]}


def get_ride_by_id(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> Optional[dict]:
    ride_id = require_string(data, "rideId", "Se requiere un rideId válido.")
    ride = clients.db.get_ride(ride_id)
    if ride is None:
        return None
    return ride_to_json(ride_id, ride)

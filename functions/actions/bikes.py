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
"""Bike registration, lookup, theft and recovery actions."""

from dataclasses import asdict
from typing import Optional

from dacite import Config, from_dict
from firebase_functions import logger

from actions.common import (
    Clients,
    ErrorCode,
    error,
    require_caller,
    require_dict,
    require_string,
    sort_key_timestamp,
    to_client,
    utc_now,
)
from shared.api import ActionResult, CallerContext, CreateBikeResult
from shared.bike_utils import calculate_bike_completeness
from shared.constants import (
    CYCLIST_REGISTRATION_NOTE,
    DEFAULT_SHOP_BIKES_LIMIT,
    DEFAULT_SHOP_NAME,
    EDITABLE_BIKE_FIELDS,
    MAX_SEARCH_TERM_LENGTH,
    MAX_SERIAL_NUMBER_LENGTH,
    MAX_SHOP_BIKES_LIMIT,
    RECOVERED_NOTE,
    SHOP_REGISTRATION_NOTE_PREFIX,
)
from shared.json_utils import convert_keys
from shared.types import (
    BikeInput,
    BikeStatus,
    BikeType,
    StatusHistoryEntry,
    TheftReportData,
    UserRole,
)

# Fields visible to anyone who looks a bike up by serial number.
PUBLIC_BIKE_FIELDS = (
    "serialNumber",
    "brand",
    "model",
    "status",
    "photoUrls",
    "color",
    "description",
    "country",
    "state",
    "bikeType",
    "ownerFirstName",
    "ownerLastName",
    "registrationDate",
    "statusHistory",
    "theftDetails",
)

# Additional fields only the owner sees.
OWNER_BIKE_FIELDS = (
    "ownerId",
    "ownershipDocumentUrl",
    "ownershipDocumentName",
    "ownerEmail",
    "ownerWhatsappPhone",
    "registeredByShopId",
)


def history_entry(status: BikeStatus, notes: str, **extra) -> dict:
    """Builds a status history entry stamped with the current time."""
    entry = StatusHistoryEntry(
        status=status.value, timestamp=utc_now(), notes=notes, **extra
    )
    entry_json = convert_keys(asdict(entry), "snake_to_camel")
    return {key: value for key, value in entry_json.items() if value is not None}


def _get_owned_bike(
    clients: Clients, bike_id: str, caller: CallerContext, message: str
) -> dict:
    bike = clients.db.get_bike(bike_id)
    if bike is None or bike.get("ownerId") != caller.uid:
        raise error(ErrorCode.PERMISSION_DENIED, message)
    return bike


def _optional_text(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _registration_note(clients: Clients, registered_by_shop_id: Optional[str]) -> str:
    if not registered_by_shop_id:
        return CYCLIST_REGISTRATION_NOTE
    shop = clients.db.get_user(registered_by_shop_id)
    if shop is None or shop.get("role") != UserRole.BIKESHOP:
        raise error(
            ErrorCode.INVALID_ARGUMENT,
            "La tienda indicada no existe o no es una tienda registrada.",
        )
    return f"{SHOP_REGISTRATION_NOTE_PREFIX}: {shop.get('shopName') or DEFAULT_SHOP_NAME}"


def _shop_customer(clients: Clients, caller: CallerContext, customer_id: str) -> dict:
    """Returns the profile of a customer the calling shop registered."""
    if caller.role != UserRole.BIKESHOP:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "Solo una tienda puede registrar bicicletas a nombre de sus clientes.",
        )
    customer = clients.db.get_user(customer_id)
    if customer is None:
        raise error(ErrorCode.NOT_FOUND, "El cliente indicado no existe.")
    if customer.get("registeredByShopId") != caller.uid:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "Este cliente no fue registrado por tu tienda.",
        )
    return customer


def create_bike(data: dict, caller: Optional[CallerContext], clients: Clients) -> dict:
    """
    Registers a bike owned by the caller.

    A bike shop may instead pass `ownerId` for a customer it registered; the
    bike then belongs to that customer and is tagged with the shop. The
    serial number must be unique. Owner profile fields are copied onto
    the bike so public lookups never need to read the owner's profile.
    """
    caller = require_caller(caller, "Debes estar autenticado para crear una bicicleta.")
    bike_data = data.get("bikeData")
    if not isinstance(bike_data, dict):
        bike_data = {}
    bike = from_dict(
        data_class=BikeInput,
        data=convert_keys(bike_data, "camel_to_snake"),
        config=Config(check_types=False),
    )

    required = (bike.serial_number, bike.brand, bike.model)
    if not all(isinstance(value, str) and value.strip() for value in required):
        raise error(
            ErrorCode.INVALID_ARGUMENT,
            "El número de serie, marca y modelo son obligatorios.",
        )
    serial_number = bike.serial_number.strip()
    if len(serial_number) > MAX_SERIAL_NUMBER_LENGTH:
        raise error(ErrorCode.INVALID_ARGUMENT, "El número de serie es demasiado largo.")
    if bike.bike_type and bike.bike_type not in {t.value for t in BikeType}:
        raise error(ErrorCode.INVALID_ARGUMENT, "Tipo de bicicleta inválido.")

    if clients.db.find_bike_by_serial(serial_number) is not None:
        raise error(
            ErrorCode.ALREADY_EXISTS,
            f"Ya existe una bicicleta registrada con el número de serie: {serial_number}",
        )

    owner_id = caller.uid
    registered_by_shop_id = bike.registered_by_shop_id or None
    if isinstance(bike.owner_id, str) and bike.owner_id and bike.owner_id != caller.uid:
        owner_id = bike.owner_id
        owner = _shop_customer(clients, caller, owner_id)
        registered_by_shop_id = caller.uid
    else:
        owner = clients.db.get_user(caller.uid) or {}
        if not caller.email:
            raise error(
                ErrorCode.UNAUTHENTICATED,
                "Tu token de usuario no tiene una dirección de correo válida.",
            )

    registration_note = _registration_note(clients, registered_by_shop_id)
    now = utc_now()
    photo_urls = bike.photo_urls if isinstance(bike.photo_urls, list) else []

    bike_id = clients.db.create_bike(
        {
            "serialNumber": serial_number,
            "brand": bike.brand.strip(),
            "model": bike.model.strip(),
            "ownerId": owner_id,
            "ownerFirstName": owner.get("firstName") or "",
            "ownerLastName": owner.get("lastName") or "",
            "ownerEmail": owner.get("email")
            or (caller.email if owner_id == caller.uid else ""),
            "ownerWhatsappPhone": owner.get("whatsappPhone") or "",
            "status": BikeStatus.IN_ORDER.value,
            "registrationDate": now,
            "statusHistory": [
                history_entry(BikeStatus.IN_ORDER, registration_note)
            ],
            "theftDetails": None,
            "color": _optional_text(bike.color),
            "description": _optional_text(bike.description),
            "country": _optional_text(bike.country),
            "state": _optional_text(bike.state),
            "bikeType": _optional_text(bike.bike_type),
            "photoUrls": [url for url in photo_urls if isinstance(url, str) and url],
            "ownershipDocumentUrl": _optional_text(bike.ownership_document_url),
            "ownershipDocumentName": _optional_text(bike.ownership_document_name),
            "registeredByShopId": registered_by_shop_id,
        }
    )
    logger.info(f"Bike {bike_id} registered by {caller.uid} for {owner_id}")
    return convert_keys(asdict(CreateBikeResult(bike_id=bike_id)), "snake_to_camel")


def get_my_bikes(data: dict, caller: Optional[CallerContext], clients: Clients) -> dict:
    caller = require_caller(caller, "Debes estar autenticado para ver tus bicicletas.")
    bikes = []
    for bike_id, bike in clients.db.list_bikes(owner_id=caller.uid):
        client_bike = to_client(bike_id, bike)
        client_bike["completeness"] = calculate_bike_completeness(bike)
        bikes.append(client_bike)
    return {"bikes": bikes}


def get_public_bike_by_serial(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> Optional[dict]:
    """
    Looks a bike up by serial number for the public search page.

    Only the owner receives contact details and ownership documents.
    Returns None when no bike has the serial number.
    """
    serial_number = require_string(
        data,
        "serialNumber",
        "El número de serie debe ser una cadena de texto no vacía.",
    )
    found = clients.db.find_bike_by_serial(serial_number)
    if found is None:
        return None

    bike_id, bike = found
    is_owner = caller is not None and caller.uid == bike.get("ownerId")
    fields = PUBLIC_BIKE_FIELDS + (OWNER_BIKE_FIELDS if is_owner else ())
    view = {field: bike.get(field) for field in fields}
    view["photoUrls"] = view.get("photoUrls") or []
    view["statusHistory"] = view.get("statusHistory") or []
    return to_client(bike_id, view)


def update_bike(data: dict, caller: Optional[CallerContext], clients: Clients) -> dict:
    """Applies owner edits. Serial number, owner and status are not editable."""
    caller = require_caller(caller, "Debes estar autenticado para editar una bicicleta.")
    bike_id = require_string(data, "bikeId", "Se requiere un bikeId válido.")
    updates = require_dict(data, "updates", "Se requieren los cambios a aplicar.")
    _get_owned_bike(clients, bike_id, caller, "No eres el propietario de esta bicicleta.")

    snake_updates = convert_keys(updates, "camel_to_snake")
    allowed = {
        key: value for key, value in snake_updates.items() if key in EDITABLE_BIKE_FIELDS
    }
    for key in ("brand", "model"):
        if key in allowed and not _optional_text(allowed[key]):
            raise error(ErrorCode.INVALID_ARGUMENT, "La marca y el modelo son obligatorios.")
    if "photo_urls" in allowed and not isinstance(allowed["photo_urls"], list):
        raise error(ErrorCode.INVALID_ARGUMENT, "photoUrls debe ser una lista.")
    if not allowed:
        raise error(ErrorCode.INVALID_ARGUMENT, "No hay campos editables en la solicitud.")

    clients.db.update_bike(bike_id, convert_keys(allowed, "snake_to_camel"))
    return to_client(bike_id, clients.db.get_bike(bike_id))


def report_bike_stolen(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    caller = require_caller(caller, "Debes estar autenticado para reportar un robo.")
    bike_id = data.get("bikeId")
    theft_payload = data.get("theftData")
    if not isinstance(bike_id, str) or not bike_id or not isinstance(theft_payload, dict):
        raise error(ErrorCode.INVALID_ARGUMENT, "Se requieren bikeId y theftData válidos.")

    theft = from_dict(
        data_class=TheftReportData,
        data=convert_keys(theft_payload, "camel_to_snake"),
        config=Config(check_types=False),
    )
    if not _optional_text(theft.theft_location_state) or not _optional_text(
        theft.theft_incident_details
    ):
        raise error(
            ErrorCode.INVALID_ARGUMENT,
            "El estado del robo y los detalles del incidente son obligatorios.",
        )

    bike = _get_owned_bike(
        clients, bike_id, caller, "No eres el propietario de esta bicicleta o no existe."
    )
    if bike.get("status") == BikeStatus.STOLEN:
        raise error(
            ErrorCode.FAILED_PRECONDITION,
            "Esta bicicleta ya está reportada como robada.",
        )

    location = ", ".join(
        part for part in (theft.theft_location_state, theft.theft_location_country) if part
    )
    notes = theft.general_notes or f"Reportada como robada en {location}."
    theft_details = convert_keys(asdict(theft), "snake_to_camel")
    theft_details["reportedAt"] = utc_now()

    clients.db.update_bike(
        bike_id,
        {"status": BikeStatus.STOLEN.value, "theftDetails": theft_details},
        history_entry=history_entry(BikeStatus.STOLEN, notes),
    )
    logger.info(f"Bike {bike_id} reported stolen by {caller.uid}")
    result = ActionResult(
        success=True, message="Bicicleta reportada como robada exitosamente."
    )
    return asdict(result)


def mark_bike_recovered(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    caller = require_caller(caller)
    bike_id = require_string(data, "bikeId", "Se requiere un bikeId válido.")
    bike = _get_owned_bike(clients, bike_id, caller, "No eres el propietario de esta bicicleta.")
    if bike.get("status") != BikeStatus.STOLEN:
        raise error(
            ErrorCode.FAILED_PRECONDITION,
            "Esta bicicleta no está reportada como robada actualmente.",
        )

    clients.db.update_bike(
        bike_id,
        {"status": BikeStatus.IN_ORDER.value, "theftDetails": None},
        history_entry=history_entry(BikeStatus.IN_ORDER, RECOVERED_NOTE),
    )
    result = ActionResult(
        success=True, message="Bicicleta marcada como recuperada exitosamente."
    )
    return asdict(result)


def _matches_search(bike: dict, term: str) -> bool:
    full_name = f"{bike.get('ownerFirstName') or ''} {bike.get('ownerLastName') or ''}"
    haystack = (bike.get("serialNumber"), full_name, bike.get("ownerEmail"))
    return any(term in value.lower() for value in haystack if isinstance(value, str))


def get_shop_registered_bikes(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """Lists bikes a shop registered, newest first, with optional search."""
    caller = require_caller(caller)
    shop_id = data.get("shopId") or caller.uid
    if shop_id != caller.uid and not caller.is_admin:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "Solo la tienda o un administrador pueden ver estas bicicletas.",
        )

    limit = data.get("limit", DEFAULT_SHOP_BIKES_LIMIT)
    if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
        raise error(ErrorCode.INVALID_ARGUMENT, "El límite debe ser un entero positivo.")
    limit = min(limit, MAX_SHOP_BIKES_LIMIT)

    bikes = clients.db.list_bikes(registered_by_shop_id=shop_id)
    bikes.sort(key=lambda item: sort_key_timestamp(item[1].get("registrationDate")), reverse=True)

    search_term = data.get("searchTerm")
    if isinstance(search_term, str) and search_term.strip():
        term = search_term.strip().lower()[:MAX_SEARCH_TERM_LENGTH]
        bikes = [(bike_id, bike) for bike_id, bike in bikes if _matches_search(bike, term)]

    return {"bikes": [to_client(bike_id, bike) for bike_id, bike in bikes[:limit]]}

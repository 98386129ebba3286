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
"""Ownership transfer requests between users."""

from dataclasses import asdict
from typing import Optional

from dacite import Config, from_dict
from firebase_functions import logger

from actions.bikes import history_entry
from actions.common import (
    Clients,
    ErrorCode,
    error,
    require_caller,
    sort_key_timestamp,
    to_client,
    utc_now,
)
from shared.api import ActionResult, CallerContext, TransferResolution
from shared.json_utils import convert_keys
from shared.types import BikeStatus, TransferRequestInput, TransferStatus

RESPONSE_MESSAGES = {
    TransferStatus.ACCEPTED: "Solicitud aceptada exitosamente.",
    TransferStatus.REJECTED: "Solicitud rechazada exitosamente.",
    TransferStatus.CANCELLED: "Solicitud cancelada exitosamente.",
}


def initiate_transfer_request(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    caller = require_caller(
        caller, "Debes estar autenticado con un correo verificado.", require_email=True
    )
    request = from_dict(
        data_class=TransferRequestInput,
        data=convert_keys(data, "camel_to_snake"),
        config=Config(check_types=False),
    )
    if not isinstance(request.bike_id, str) or not request.bike_id or not (
        isinstance(request.recipient_email, str) and request.recipient_email.strip()
    ):
        raise error(
            ErrorCode.INVALID_ARGUMENT,
            "Se requiere el ID de la bicicleta y el correo del destinatario.",
        )
    recipient_email = request.recipient_email.strip().lower()
    if recipient_email == caller.email.lower():
        raise error(
            ErrorCode.INVALID_ARGUMENT,
            "No puedes transferir una bicicleta a tu propia cuenta.",
        )

    bike = clients.db.get_bike(request.bike_id)
    if bike is None or bike.get("ownerId") != caller.uid:
        raise error(
            ErrorCode.PERMISSION_DENIED, "No eres el propietario de esta bicicleta."
        )
    if bike.get("status") != BikeStatus.IN_ORDER:
        raise error(
            ErrorCode.FAILED_PRECONDITION,
            "Solo las bicicletas 'En Regla' pueden ser transferidas.",
        )

    pending = clients.db.list_transfer_requests(
        bike_id=request.bike_id, status=TransferStatus.PENDING.value
    )
    if pending:
        raise error(
            ErrorCode.ALREADY_EXISTS,
            "Ya existe una solicitud de transferencia pendiente para esta bicicleta.",
        )

    request_id = clients.db.create_transfer_request(
        {
            "bikeId": request.bike_id,
            "serialNumber": bike.get("serialNumber"),
            "bikeBrand": bike.get("brand"),
            "bikeModel": bike.get("model"),
            "fromOwnerId": caller.uid,
            "fromOwnerEmail": caller.email,
            "toUserEmail": recipient_email,
            "status": TransferStatus.PENDING.value,
            "requestDate": utc_now(),
            "transferDocumentUrl": request.transfer_document_url or None,
            "transferDocumentName": request.transfer_document_name or None,
        }
    )
    logger.info(f"Transfer request {request_id} created for bike {request.bike_id}")
    result = asdict(
        ActionResult(success=True, message="Solicitud de transferencia iniciada.")
    )
    result["requestId"] = request_id
    return result


def respond_to_transfer_request(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """
    Accepts, rejects or cancels a pending transfer request.

    The sender may only cancel; the recipient may accept or reject. Accepting
    moves the bike to the recipient and re-copies the owner profile fields,
    all inside one transaction.
    """
    caller = require_caller(caller, require_email=True)
    request_id = data.get("requestId")
    action = data.get("action")
    if (
        not isinstance(request_id, str)
        or not request_id
        or not isinstance(action, str)
        or action not in RESPONSE_MESSAGES
    ):
        raise error(
            ErrorCode.INVALID_ARGUMENT,
            "Se requiere ID de solicitud y una acción válida.",
        )
    action = TransferStatus(action)

    new_owner_profile = None
    if action == TransferStatus.ACCEPTED:
        new_owner_profile = clients.db.get_user(caller.uid)

    def _decide(request: Optional[dict], bike: Optional[dict]) -> TransferResolution:
        if request is None:
            raise error(ErrorCode.NOT_FOUND, "Solicitud de transferencia no encontrada.")
        if request.get("status") != TransferStatus.PENDING:
            raise error(
                ErrorCode.FAILED_PRECONDITION, "Esta solicitud ya ha sido resuelta."
            )

        if action == TransferStatus.CANCELLED:
            if request.get("fromOwnerId") != caller.uid:
                raise error(
                    ErrorCode.PERMISSION_DENIED,
                    "Solo el remitente puede cancelar la solicitud.",
                )
        elif (request.get("toUserEmail") or "").lower() != caller.email.lower():
            raise error(
                ErrorCode.PERMISSION_DENIED,
                "Solo el destinatario puede responder a la solicitud.",
            )

        resolution = TransferResolution(
            request_updates={"status": action.value, "resolutionDate": utc_now()},
            result=asdict(
                ActionResult(success=True, message=RESPONSE_MESSAGES[action])
            ),
        )
        if action != TransferStatus.ACCEPTED:
            return resolution

        if bike is None or bike.get("ownerId") != request.get("fromOwnerId"):
            raise error(
                ErrorCode.FAILED_PRECONDITION,
                "La propiedad de la bicicleta ha cambiado o la bicicleta no existe.",
            )
        if bike.get("status") != BikeStatus.IN_ORDER:
            raise error(
                ErrorCode.FAILED_PRECONDITION,
                "Solo las bicicletas 'En Regla' pueden ser transferidas.",
            )
        if new_owner_profile is None:
            raise error(
                ErrorCode.NOT_FOUND, "El perfil del usuario destinatario no existe."
            )

        resolution.bike_updates = {
            "ownerId": caller.uid,
            "ownerFirstName": new_owner_profile.get("firstName") or "",
            "ownerLastName": new_owner_profile.get("lastName") or "",
            "ownerEmail": new_owner_profile.get("email") or caller.email,
            "ownerWhatsappPhone": new_owner_profile.get("whatsappPhone") or "",
            "status": BikeStatus.IN_ORDER.value,
        }
        resolution.history_entry = history_entry(
            BikeStatus.TRANSFERRED,
            f"Propiedad transferida de {request.get('fromOwnerEmail')} "
            f"a {request.get('toUserEmail')}.",
            transfer_document_url=request.get("transferDocumentUrl") or None,
            transfer_document_name=request.get("transferDocumentName") or None,
        )
        return resolution

    result = clients.db.resolve_transfer_request(request_id, _decide)
    logger.info(f"Transfer request {request_id} {action} by {caller.uid}")
    return result


def get_user_transfer_requests(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """Returns requests the caller sent or received, newest first."""
    caller = require_caller(caller, require_email=True)
    sent = clients.db.list_transfer_requests(from_owner_id=caller.uid)
    received = clients.db.list_transfer_requests(to_user_email=caller.email.lower())

    unique = {request_id: request for request_id, request in sent + received}
    ordered = sorted(
        unique.items(),
        key=lambda item: sort_key_timestamp(item[1].get("requestDate")),
        reverse=True,
    )
    return {"requests": [to_client(request_id, request) for request_id, request in ordered]}

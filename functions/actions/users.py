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
"""User roles, account provisioning, profiles and partner analytics."""

from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Optional

from firebase_functions import logger

from actions.common import (
    Clients,
    ErrorCode,
    error,
    parse_form,
    require_admin,
    require_caller,
    require_dict,
    require_string,
    to_client,
    utc_now,
)
from shared.api import CallerContext, CreateAccountResult, MessageResult
from shared.constants import PROTECTED_PROFILE_FIELDS
from shared.json_utils import convert_keys, parse_datetime
from shared.schemas import BikeShopAccountForm, CustomerAccountForm, NgoAccountForm
from shared.types import BikeStatus, NgoAnalytics, ShopAnalytics, UserRole

ACCOUNT_FORMS = {
    UserRole.BIKESHOP: BikeShopAccountForm,
    UserRole.NGO: NgoAccountForm,
    UserRole.CYCLIST: CustomerAccountForm,
}


def _camel(result) -> dict:
    return convert_keys(asdict(result), "snake_to_camel")


def _writable_profile_fields(profile: dict) -> dict:
    """Drops the fields only the backend may set on a profile."""
    snake_profile = convert_keys(profile, "camel_to_snake")
    allowed = {
        key: value
        for key, value in snake_profile.items()
        if key not in PROTECTED_PROFILE_FIELDS
    }
    return convert_keys(allowed, "snake_to_camel")


def _split_name(full_name: str) -> tuple[str, str]:
    first, _, rest = full_name.strip().partition(" ")
    return first, rest.strip()


def update_user_role(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    require_admin(caller, "Solo los administradores pueden modificar roles de usuario.")
    uid = data.get("uid")
    role = data.get("role")
    if not isinstance(uid, str) or not uid or not isinstance(role, str) or not role:
        raise error(
            ErrorCode.INVALID_ARGUMENT,
            "La función debe ser llamada con un 'uid' y un 'role'.",
        )
    if role not in {user_role.value for user_role in UserRole}:
        raise error(ErrorCode.INVALID_ARGUMENT, f"Rol inválido: {role}.")

    is_admin = role == UserRole.ADMIN
    clients.auth.set_custom_user_claims(uid, {"admin": is_admin, "role": role})
    clients.db.set_user(uid, {"role": role, "isAdmin": is_admin}, merge=True)
    logger.info(f"Role of user {uid} set to {role} by {caller.uid}")
    return asdict(MessageResult(message=f"¡Listo! El usuario {uid} ahora tiene el rol {role}."))


def delete_user_account(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """Deletes a user's bikes, then their profile, then their auth account."""
    require_admin(
        caller, "Solo los administradores pueden eliminar cuentas de usuario."
    )
    uid = require_string(data, "uid", "La función debe ser llamada con un 'uid'.")

    deleted_bikes = clients.db.delete_bikes_by_owner(uid)
    clients.db.delete_user(uid)
    clients.auth.delete_user(uid)
    logger.info(f"User {uid} deleted by {caller.uid} along with {deleted_bikes} bikes")
    return asdict(
        MessageResult(message=f"Se eliminó exitosamente al usuario {uid} y sus datos.")
    )


def create_account(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """
    Provisions a bike shop, NGO or customer account on behalf of someone else.

    Admins may create any of the three. A bike shop may create cyclist
    accounts for its own customers, which are tagged with the shop's id.
    The new user receives a password reset link to set their password.
    """
    caller = require_caller(caller)
    role = data.get("role")
    account_data = data.get("accountData")
    if (
        not isinstance(account_data, dict)
        or not isinstance(role, str)
        or role not in ACCOUNT_FORMS
        or not account_data.get("email")
    ):
        raise error(
            ErrorCode.INVALID_ARGUMENT,
            "Se requieren datos de la cuenta, rol y correo electrónico.",
        )
    role = UserRole(role)

    shop_creating_customer = (
        caller.role == UserRole.BIKESHOP and role == UserRole.CYCLIST
    )
    if not caller.is_admin and not shop_creating_customer:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "Solo los administradores pueden crear nuevas cuentas.",
        )

    form = parse_form(ACCOUNT_FORMS[role], account_data)
    email = form.email.strip().lower()
    if clients.auth.get_uid_by_email(email):
        raise error(
            ErrorCode.ALREADY_EXISTS,
            f"Ya existe una cuenta con el correo {email}.",
        )

    if role == UserRole.CYCLIST:
        display_name = f"{form.first_name} {form.last_name} (Cliente)"
    elif role == UserRole.BIKESHOP:
        display_name = form.shop_name
    else:
        display_name = form.ngo_name

    uid = clients.auth.create_user(email, display_name)
    clients.auth.set_custom_user_claims(uid, {"role": role.value})

    profile = convert_keys(form.model_dump(), "snake_to_camel")
    profile.update(
        {
            "email": email,
            "role": role.value,
            "isAdmin": False,
            "createdBy": caller.uid,
            "createdAt": utc_now(),
        }
    )
    if role == UserRole.CYCLIST:
        profile["registeredByShopId"] = caller.uid
    else:
        profile["firstName"], profile["lastName"] = _split_name(form.contact_name)
    clients.db.set_user(uid, profile)

    reset_link = clients.auth.generate_password_reset_link(email)
    logger.info(
        f"Account for {display_name} <{email}> created by {caller.uid}. "
        f"Password reset link: {reset_link}"
    )
    return _camel(
        CreateAccountResult(
            uid=uid,
            message=(
                f"Cuenta para {display_name} creada. Se ha enviado un correo "
                "para establecer la contraseña."
            ),
        )
    )


def create_user_profile(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """Creates the caller's own cyclist profile after sign-up."""
    caller = require_caller(caller, require_email=True)
    profile = require_dict(data, "profile", "Se requieren los datos del perfil.")
    if clients.db.get_user(caller.uid) is not None:
        raise error(ErrorCode.ALREADY_EXISTS, "El perfil de usuario ya existe.")

    new_profile = _writable_profile_fields(profile)
    new_profile.update(
        {
            "email": caller.email.lower(),
            "role": UserRole.CYCLIST.value,
            "isAdmin": False,
            "createdAt": utc_now(),
        }
    )

    referrer_id = profile.get("referrerId")
    if isinstance(referrer_id, str) and referrer_id and referrer_id != caller.uid:
        if clients.db.increment_referral_count(referrer_id):
            new_profile["referrerId"] = referrer_id
        else:
            logger.warn(f"Ignoring unknown referrer {referrer_id} for {caller.uid}")

    clients.db.set_user(caller.uid, new_profile)
    return asdict(MessageResult(message="Perfil creado exitosamente."))


def update_user_profile(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """Merges profile edits and keeps the owner names on the caller's bikes in sync."""
    caller = require_caller(caller)
    profile = require_dict(data, "profile", "Se requieren los datos del perfil.")
    updates = _writable_profile_fields(profile)
    if not updates:
        raise error(ErrorCode.INVALID_ARGUMENT, "No hay campos editables en la solicitud.")

    clients.db.set_user(caller.uid, updates, merge=True)

    name_updates = {}
    if "firstName" in updates:
        name_updates["ownerFirstName"] = updates["firstName"]
    if "lastName" in updates:
        name_updates["ownerLastName"] = updates["lastName"]
    if name_updates:
        updated_bikes = clients.db.update_bikes_by_owner(caller.uid, name_updates)
        logger.info(f"Propagated name change of {caller.uid} to {updated_bikes} bikes")
    return asdict(MessageResult(message="Perfil actualizado exitosamente."))


def list_users(data: dict, caller: Optional[CallerContext], clients: Clients) -> dict:
    """Admin listing of user profiles, optionally limited to one role."""
    require_admin(caller, "Solo los administradores pueden ver la lista de usuarios.")
    role = data.get("role")
    if role is not None and role not in {user_role.value for user_role in UserRole}:
        raise error(ErrorCode.INVALID_ARGUMENT, f"Rol inválido: {role}.")

    profiles = sorted(
        clients.db.list_users(role=role),
        key=lambda item: str(item[1].get("email") or "").lower(),
    )
    return {"users": [to_client(uid, profile) for uid, profile in profiles]}


def get_user_profile_by_email(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> Optional[dict]:
    """Looks a profile up by email for bike shops and admins; None when unknown."""
    caller = require_caller(caller)
    if not caller.is_admin and caller.role != UserRole.BIKESHOP:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "Solo las tiendas y los administradores pueden buscar usuarios por correo.",
        )
    email = require_string(data, "email", "Se requiere un correo electrónico.")
    found = clients.db.find_user_by_email(email)
    if found is None:
        return None
    uid, profile = found
    return to_client(uid, profile)


def _require_self_or_admin(
    caller: Optional[CallerContext], subject_id: Optional[str]
) -> tuple[CallerContext, str]:
    caller = require_caller(caller)
    subject_id = subject_id or caller.uid
    if subject_id != caller.uid and not caller.is_admin:
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "No tienes permiso para ver estas estadísticas.",
        )
    return caller, subject_id


def _date_range(data: dict) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Parses the optional `dateRange: {from, to}` filter.

    A `to` given as a plain date (YYYY-MM-DD) covers that whole day.
    """
    date_range = data.get("dateRange")
    if date_range is None:
        return None, None
    if not isinstance(date_range, dict):
        raise error(ErrorCode.INVALID_ARGUMENT, "Rango de fechas inválido.")
    try:
        start = parse_datetime(date_range.get("from"))
        end = parse_datetime(date_range.get("to"))
    except ValueError:
        raise error(ErrorCode.INVALID_ARGUMENT, "Rango de fechas inválido.")
    raw_end = date_range.get("to")
    if end is not None and isinstance(raw_end, str) and len(raw_end.strip()) == 10:
        end = end + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


def _in_range(value, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is None and end is None:
        return True
    try:
        moment = parse_datetime(value)
    except ValueError:
        return False
    if moment is None:
        return False
    return (start is None or moment >= start) and (end is None or moment <= end)


def _history_in_range(
    bike: dict, start: Optional[datetime], end: Optional[datetime]
) -> list[dict]:
    return [
        entry
        for entry in bike.get("statusHistory") or []
        if _in_range(entry.get("timestamp"), start, end)
    ]


def _owned_bikes(clients: Clients, owner_ids) -> list[dict]:
    if not owner_ids:
        return []
    return [bike for _, bike in clients.db.list_bikes(owner_ids=sorted(owner_ids))]


def get_shop_analytics(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """
    Counts a shop's customers and their bikes.

    Customers are users the shop registered or referred. Bikes are those
    customers' bikes; with a `dateRange` only bikes registered in it count.
    `totalBikesByShop` counts the ones the shop itself registered, while
    stolen and transferred count the matching history events in the range.
    """
    _, shop_id = _require_self_or_admin(caller, data.get("shopId"))
    start, end = _date_range(data)
    customer_ids = {uid for uid, _ in clients.db.list_users(registered_by_shop_id=shop_id)}
    customer_ids |= {uid for uid, _ in clients.db.list_users(referrer_id=shop_id)}

    bikes = [
        bike
        for bike in _owned_bikes(clients, customer_ids)
        if _in_range(bike.get("registrationDate"), start, end)
    ]
    events = [entry for bike in bikes for entry in _history_in_range(bike, start, end)]

    analytics = ShopAnalytics(
        total_bikes_by_shop=sum(
            1 for bike in bikes if bike.get("registeredByShopId") == shop_id
        ),
        total_users_by_shop=len(customer_ids),
        stolen_bikes=sum(1 for entry in events if entry.get("status") == BikeStatus.STOLEN),
        transferred_bikes=sum(
            1 for entry in events if entry.get("status") == BikeStatus.TRANSFERRED
        ),
    )
    return _camel(analytics)


def _count_thefts_and_recoveries(history: list[dict]) -> tuple[int, int]:
    stolen = recovered = 0
    was_stolen = False
    for entry in history:
        if entry.get("status") == BikeStatus.STOLEN:
            stolen += 1
            was_stolen = True
        elif was_stolen and entry.get("status") == BikeStatus.IN_ORDER:
            recovered += 1
            was_stolen = False
    return stolen, recovered


def get_ngo_analytics(
    data: dict, caller: Optional[CallerContext], clients: Clients
) -> dict:
    """
    Counts users an NGO referred and the bikes they own.

    Thefts are `Robada` history events; a recovery is an `En Regla` event
    that follows a theft. With a `dateRange` only events inside it count.
    """
    _, ngo_id = _require_self_or_admin(caller, data.get("ngoId"))
    start, end = _date_range(data)
    referred_ids = [uid for uid, _ in clients.db.list_users(referrer_id=ngo_id)]
    bikes = _owned_bikes(clients, referred_ids)

    stolen = recovered = 0
    for bike in bikes:
        bike_stolen, bike_recovered = _count_thefts_and_recoveries(
            _history_in_range(bike, start, end)
        )
        stolen += bike_stolen
        recovered += bike_recovered

    analytics = NgoAnalytics(
        total_users_referred=len(referred_ids),
        total_bikes_from_referrals=len(bikes),
        stolen_bikes_from_referrals=stolen,
        recovered_bikes_from_referrals=recovered,
    )
    return _camel(analytics)


def grant_admin(clients: Clients, email: str) -> str:
    """
    Gives the user with `email` the admin claims and profile flags.

    Returns:
        The uid of the promoted user.

    Raises:
        HttpsError: `not-found` when no auth user has the email.
    """
    uid = clients.auth.get_uid_by_email(email)
    if uid is None:
        raise error(
            ErrorCode.NOT_FOUND, f"No se encontró un usuario con el correo {email}."
        )
    clients.auth.set_custom_user_claims(uid, {"admin": True, "role": UserRole.ADMIN.value})
    clients.db.set_user(
        uid, {"role": UserRole.ADMIN.value, "isAdmin": True}, merge=True
    )
    logger.info(f"Granted admin to {email} (uid {uid})")
    return uid


def set_admin(data: dict, caller: Optional[CallerContext], clients: Clients) -> dict:
    """Bootstraps the first administrator; afterwards only admins may grant admin."""
    email = require_string(
        data, "email", "La función debe ser llamada con un 'email'."
    )
    admin_exists = bool(clients.db.list_users(role=UserRole.ADMIN.value))
    if admin_exists and (caller is None or not caller.is_admin):
        raise error(
            ErrorCode.PERMISSION_DENIED,
            "Solo un administrador puede otorgar permisos de administrador.",
        )
    grant_admin(clients, email)
    return asdict(MessageResult(message=f"¡Listo! {email} ahora es administrador."))

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
"""Validation schemas for the account and ride forms submitted to the API."""

import re
from datetime import datetime
from typing import ClassVar, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from shared.types import RideLevel

_POSTAL_CODE = re.compile(r"^\d{4,5}$")
_CUSTOMER_POSTAL_CODE = re.compile(r"^\d{5}$")
_WHATSAPP_PHONE = re.compile(r"^\+?[0-9\s\-()]*$")

_url_adapter = TypeAdapter(HttpUrl)
_email_adapter = TypeAdapter(EmailStr)

GENDERS = ("masculino", "femenino", "otro", "prefiero_no_decir", "")


def first_error_message(error: ValidationError) -> str:
    """Returns the user-facing message of the first validation error."""
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    ctx_error = (first.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else first.get("msg", "")


def _check_optional_url(value: Optional[str], message: str) -> Optional[str]:
    if value is None or value == "":
        return value
    try:
        _url_adapter.validate_python(value)
    except ValidationError:
        raise ValueError(message)
    return value


def _check_email(value: str, message: str) -> str:
    try:
        _email_adapter.validate_python(value)
    except ValidationError:
        raise ValueError(message)
    return value


class _FormModel(BaseModel):
    """Base for forms whose required text fields carry their own messages."""

    model_config = ConfigDict(extra="ignore", validate_default=True)

    required_messages: ClassVar[dict] = {}
    url_messages: ClassVar[dict] = {}
    email_messages: ClassVar[dict] = {}

    @field_validator("*", mode="after")
    @classmethod
    def _check_field(cls, value, info: ValidationInfo):
        name = info.field_name
        if name in cls.required_messages:
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValueError(cls.required_messages[name])
        if name in cls.url_messages:
            value = _check_optional_url(value, cls.url_messages[name])
        if name in cls.email_messages:
            value = _check_email(value, cls.email_messages[name])
        return value


class BikeShopAccountForm(_FormModel):
    shop_name: str = ""
    country: str = ""
    profile_state: str = ""
    address: str = ""
    postal_code: str = ""
    phone: str = ""
    email: str = ""
    website: Optional[str] = None
    maps_link: Optional[str] = None
    whatsapp_group_link: Optional[str] = None
    contact_name: str = ""
    contact_email: str = ""
    contact_whats_app: str = ""

    required_messages: ClassVar[dict] = {
        "shop_name": "El nombre de la tienda es obligatorio.",
        "country": "El país es obligatorio.",
        "profile_state": "El estado/provincia es obligatorio.",
        "address": "La dirección es obligatoria.",
        "postal_code": "El código postal es obligatorio.",
        "phone": "El teléfono de la tienda es obligatorio.",
        "contact_name": "El nombre del contacto es obligatorio.",
        "contact_whats_app": "El WhatsApp del contacto es obligatorio.",
    }
    url_messages: ClassVar[dict] = {
        "website": "URL del sitio web inválida.",
        "maps_link": "URL de Google Maps inválida.",
        "whatsapp_group_link": "URL de grupo de WhatsApp inválida.",
    }
    email_messages: ClassVar[dict] = {
        "email": "El correo electrónico de la tienda es inválido.",
        "contact_email": "El correo electrónico del contacto es inválido.",
    }

    @field_validator("postal_code")
    @classmethod
    def _postal_code_digits(cls, value: str) -> str:
        if value and not _POSTAL_CODE.match(value):
            raise ValueError("El código postal debe tener entre 4 y 5 dígitos.")
        return value


class NgoAccountForm(_FormModel):
    ngo_name: str = ""
    mission: str = ""
    country: str = ""
    profile_state: str = ""
    address: str = ""
    postal_code: str = ""
    public_whatsapp: str = ""
    website: Optional[str] = None
    whatsapp_group_link: Optional[str] = None
    meeting_days: Optional[List[str]] = None
    meeting_time: Optional[str] = None
    meeting_point_maps_link: Optional[str] = None
    email: str = ""
    contact_name: str = ""
    contact_whats_app: str = ""

    required_messages: ClassVar[dict] = {
        "ngo_name": "El nombre de la ONG es obligatorio.",
        "country": "El país es obligatorio.",
        "profile_state": "El estado/provincia es obligatorio.",
        "address": "La dirección es obligatoria.",
        "postal_code": "El código postal es obligatorio.",
        "public_whatsapp": "El WhatsApp público es obligatorio.",
        "contact_name": "El nombre del contacto es obligatorio.",
        "contact_whats_app": "El WhatsApp del contacto es obligatorio.",
    }
    url_messages: ClassVar[dict] = {
        "website": "URL del sitio web inválida.",
        "whatsapp_group_link": "URL de grupo de WhatsApp inválida.",
        "meeting_point_maps_link": "URL de Google Maps inválida.",
    }
    email_messages: ClassVar[dict] = {
        "email": "El correo electrónico de la cuenta es inválido.",
    }

    @field_validator("mission")
    @classmethod
    def _mission_length(cls, value: str) -> str:
        if len(value.strip()) < 20:
            raise ValueError("La misión debe tener al menos 20 caracteres.")
        return value

    @field_validator("postal_code")
    @classmethod
    def _postal_code_digits(cls, value: str) -> str:
        if value and not _POSTAL_CODE.match(value):
            raise ValueError("El código postal debe tener entre 4 y 5 dígitos.")
        return value


class CustomerAccountForm(_FormModel):
    """A cyclist account created on behalf of a customer by a bike shop."""

    email: str = ""
    first_name: str = ""
    last_name: str = ""
    country: str = ""
    profile_state: str = ""
    whatsapp_phone: Optional[str] = None
    postal_code: Optional[str] = None
    gender: Optional[str] = None

    required_messages: ClassVar[dict] = {
        "first_name": "El nombre del cliente es obligatorio.",
        "last_name": "El apellido del cliente es obligatorio.",
        "country": "El país del cliente es obligatorio.",
        "profile_state": "El estado/provincia del cliente es obligatorio.",
    }
    email_messages: ClassVar[dict] = {
        "email": "Correo electrónico del cliente inválido.",
    }

    @field_validator("whatsapp_phone")
    @classmethod
    def _whatsapp_phone_format(cls, value: Optional[str]) -> Optional[str]:
        if value and not _WHATSAPP_PHONE.match(value):
            raise ValueError("Número de WhatsApp inválido.")
        return value

    @field_validator("postal_code")
    @classmethod
    def _postal_code_digits(cls, value: Optional[str]) -> Optional[str]:
        if value and not _CUSTOMER_POSTAL_CODE.match(value):
            raise ValueError("El código postal debe tener 5 dígitos.")
        return value

    @field_validator("gender")
    @classmethod
    def _known_gender(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in GENDERS:
            raise ValueError("Género inválido.")
        return value


class RideForm(_FormModel):
    title: str = ""
    description: str = ""
    ride_date: Optional[datetime] = None
    country: str = ""
    state: str = ""
    distance: float = 0
    level: Optional[str] = None
    meeting_point: str = ""
    meeting_point_maps_link: Optional[str] = None
    modality: Optional[str] = None
    cost: Optional[float] = None

    required_messages: ClassVar[dict] = {
        "ride_date": "La fecha de la rodada es obligatoria.",
        "country": "El país es obligatorio.",
        "state": "El estado/provincia es obligatorio.",
    }
    url_messages: ClassVar[dict] = {
        "meeting_point_maps_link": "URL de Google Maps inválida.",
    }

    @field_validator("cost", mode="before")
    @classmethod
    def _blank_cost_is_none(cls, value):
        return None if value == "" else value

    @field_validator("title")
    @classmethod
    def _title_length(cls, value: str) -> str:
        if len(value.strip()) < 5:
            raise ValueError("El título debe tener al menos 5 caracteres.")
        return value

    @field_validator("description")
    @classmethod
    def _description_length(cls, value: str) -> str:
        if len(value.strip()) < 20:
            raise ValueError("La descripción debe tener al menos 20 caracteres.")
        return value

    @field_validator("meeting_point")
    @classmethod
    def _meeting_point_length(cls, value: str) -> str:
        if len(value.strip()) < 10:
            raise ValueError(
                "El punto de encuentro debe tener al menos 10 caracteres."
            )
        return value

    @field_validator("distance")
    @classmethod
    def _positive_distance(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("La distancia debe ser un número positivo.")
        return value

    @field_validator("cost")
    @classmethod
    def _non_negative_cost(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value < 0:
            raise ValueError("El costo no puede ser negativo.")
        return value

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: Optional[str]) -> Optional[str]:
        if value and value not in {level.value for level in RideLevel}:
            raise ValueError("Nivel de rodada inválido.")
        return value or None

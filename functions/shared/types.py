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

from enum import StrEnum
from dataclasses import dataclass, field
from typing import Any, List, Optional


class BikeStatus(StrEnum):
    IN_ORDER = "En Regla"
    STOLEN = "Robada"
    TRANSFERRED = "Transferida"


class UserRole(StrEnum):
    CYCLIST = "cyclist"
    BIKESHOP = "bikeshop"
    ADMIN = "admin"
    NGO = "ngo"


class TransferStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class BikeType(StrEnum):
    ROAD = "Ruta"
    TRACK = "Pista"
    ENDURO = "Enduro"
    XC = "XC"
    DOWNHILL = "Downhill"
    BMX = "BMX"
    TRIAL = "Trial"
    GRAVEL = "Gravel"
    URBAN = "Urbana"
    E_BIKE = "E-Bike"


class RideLevel(StrEnum):
    BEGINNER = "Principiante"
    INTERMEDIATE = "Intermedio"
    EXPERT = "Experto"


class UploadKind(StrEnum):
    BIKE_PHOTO = "bikePhoto"
    OWNERSHIP_DOCUMENT = "ownershipDocument"
    TRANSFER_DOCUMENT = "transferDocument"
    SPONSOR_LOGO = "sponsorLogo"


@dataclass
class BikeInput:
    """Bike fields accepted from the registration form."""

    serial_number: str = ""
    brand: str = ""
    model: str = ""
    color: Optional[str] = None
    description: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    bike_type: Optional[str] = None
    photo_urls: List[str] = field(default_factory=list)
    ownership_document_url: Optional[str] = None
    ownership_document_name: Optional[str] = None
    registered_by_shop_id: Optional[str] = None
    owner_id: Optional[str] = None


@dataclass
class StatusHistoryEntry:
    status: str
    timestamp: Any  # datetime when stored, ISO string when returned
    notes: str
    transfer_document_url: Optional[str] = None
    transfer_document_name: Optional[str] = None


@dataclass
class TheftReportData:
    theft_location_state: str = ""
    theft_incident_details: str = ""
    theft_location_country: Optional[str] = None
    theft_perpetrator_details: Optional[str] = None
    general_notes: Optional[str] = None


@dataclass
class TransferRequestInput:
    bike_id: str = ""
    recipient_email: str = ""
    transfer_document_url: Optional[str] = None
    transfer_document_name: Optional[str] = None


@dataclass
class ShopAnalytics:
    total_bikes_by_shop: int = 0
    total_users_by_shop: int = 0
    stolen_bikes: int = 0
    transferred_bikes: int = 0


@dataclass
class NgoAnalytics:
    total_users_referred: int = 0
    total_bikes_from_referrals: int = 0
    stolen_bikes_from_referrals: int = 0
    recovered_bikes_from_referrals: int = 0

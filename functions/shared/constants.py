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

MAX_SERIAL_NUMBER_LENGTH = 100
MAX_SEARCH_TERM_LENGTH = 100
MAX_FILE_NAME_LENGTH = 200
DEFAULT_SHOP_BIKES_LIMIT = 50
MAX_SHOP_BIKES_LIMIT = 500

# Fields an owner may edit on an existing bike record.
EDITABLE_BIKE_FIELDS = (
    "brand",
    "model",
    "color",
    "description",
    "country",
    "state",
    "bike_type",
    "photo_urls",
    "ownership_document_url",
    "ownership_document_name",
)

# Profile fields a user may never set on their own document.
PROTECTED_PROFILE_FIELDS = (
    "role",
    "is_admin",
    "email",
    "referral_count",
    "referrer_id",
    "registered_by_shop_id",
    "created_by",
    "created_at",
)

SHOP_REGISTRATION_NOTE_PREFIX = "Registrada por tienda"
CYCLIST_REGISTRATION_NOTE = "Registro inicial por ciclista"
RECOVERED_NOTE = "Bicicleta marcada como recuperada por el propietario."
DEFAULT_SHOP_NAME = "Tienda"
DEFAULT_ORGANIZER_NAME = "Organizador"

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
"""Builders shared by the action handler tests."""

from actions import bikes
from actions.common import Clients
from backend.auth import InMemoryAuthClient
from backend.db import InMemoryDbClient
from backend.storage import InMemoryStorageClient
from shared.api import CallerContext


def make_clients() -> Clients:
    return Clients(
        db=InMemoryDbClient(),
        auth=InMemoryAuthClient(),
        storage=InMemoryStorageClient(),
    )


def make_caller(uid: str, email: str | None = None, **claims) -> CallerContext:
    token = dict(claims)
    if email is not None:
        token["email"] = email
    return CallerContext(uid=uid, token=token)


def add_user(clients: Clients, uid: str, email: str, **profile) -> CallerContext:
    """Registers an auth user with a profile document and returns their caller context."""
    clients.auth.add_user(uid, email)
    clients.db.set_user(uid, {"email": email, **profile})
    role = profile.get("role")
    claims = {"role": role} if role else {}
    if profile.get("isAdmin"):
        claims["admin"] = True
    return make_caller(uid, email, **claims)


def register_bike(
    clients: Clients, caller: CallerContext, serial_number: str, **fields
) -> str:
    """Registers a bike through the createBike handler and returns its id."""
    bike_data = {"serialNumber": serial_number, "brand": "Trek", "model": "Marlin 5"}
    bike_data.update(fields)
    return bikes.create_bike({"bikeData": bike_data}, caller, clients)["bikeId"]

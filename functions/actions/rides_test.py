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

import unittest
from datetime import datetime, timedelta, timezone

from firebase_functions import https_fn

from actions import rides
from actions.testing_utils import add_user, make_clients

ErrorCode = https_fn.FunctionsErrorCode


def _ride_data(days_from_now=7, **fields):
    ride_date = datetime.now(timezone.utc) + timedelta(days=days_from_now)
    data = {
        "title": "Rodada nocturna",
        "description": "Recorrido tranquilo por el centro histórico de la ciudad.",
        "rideDate": ride_date.isoformat(),
        "country": "México",
        "state": "Jalisco",
        "distance": 25,
        "level": "Principiante",
        "meetingPoint": "Plaza de Armas, junto al kiosco",
        "modality": "Urbana",
        "cost": "",
    }
    data.update(fields)
    return data


class CreateOrUpdateRideTest(unittest.TestCase):

    def setUp(self):
        self.clients = make_clients()
        self.ngo = add_user(
            self.clients, "uid-ngo", "ngo@example.com", role="ngo", ngoName="Bici Vida"
        )

    def test_creates_ride_with_organizer_name(self):
        result = rides.create_or_update_ride(
            {"rideData": _ride_data()}, self.ngo, self.clients
        )

        self.assertEqual(result["message"], "Evento creado exitosamente.")
        ride = self.clients.db.get_ride(result["rideId"])
        self.assertEqual(ride["organizerId"], "uid-ngo")
        self.assertEqual(ride["organizerName"], "Bici Vida")
        self.assertIsNone(ride["cost"])
        self.assertIsInstance(ride["rideDate"], datetime)
        self.assertIn("createdAt", ride)

    def test_invalid_ride_reports_first_message(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            rides.create_or_update_ride(
                {"rideData": _ride_data(title="Ida")}, self.ngo, self.clients
            )
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)
        self.assertEqual(
            ctx.exception.message, "El título debe tener al menos 5 caracteres."
        )

    def test_negative_distance_is_rejected(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            rides.create_or_update_ride(
                {"rideData": _ride_data(distance=-3)}, self.ngo, self.clients
            )
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)

    def test_organizer_profile_is_required(self):
        stranger = add_user(self.clients, "uid-x", "x@example.com")
        self.clients.db.delete_user("uid-x")

        with self.assertRaises(https_fn.HttpsError) as ctx:
            rides.create_or_update_ride({"rideData": _ride_data()}, stranger, self.clients)
        self.assertEqual(ctx.exception.code, ErrorCode.NOT_FOUND)

    def test_only_organizer_can_update_or_delete(self):
        ride_id = rides.create_or_update_ride(
            {"rideData": _ride_data()}, self.ngo, self.clients
        )["rideId"]
        other = add_user(self.clients, "uid-shop", "s@example.com", shopName="S")

        with self.assertRaises(https_fn.HttpsError) as ctx:
            rides.create_or_update_ride(
                {"rideData": _ride_data(), "rideId": ride_id}, other, self.clients
            )
        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

        with self.assertRaises(https_fn.HttpsError) as ctx:
            rides.delete_ride({"rideId": ride_id}, other, self.clients)
        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

        rides.create_or_update_ride(
            {"rideData": _ride_data(title="Rodada matutina"), "rideId": ride_id},
            self.ngo,
            self.clients,
        )
        self.assertEqual(self.clients.db.get_ride(ride_id)["title"], "Rodada matutina")

        rides.delete_ride({"rideId": ride_id}, self.ngo, self.clients)
        self.assertIsNone(self.clients.db.get_ride(ride_id))


class RideQueriesTest(unittest.TestCase):

    def setUp(self):
        self.clients = make_clients()
        self.ngo = add_user(
            self.clients, "uid-ngo", "ngo@example.com", role="ngo", ngoName="Bici Vida"
        )
        self.far = self._create(days_from_now=10)
        self.soon = self._create(days_from_now=2, state="Nuevo León")
        self.past = self._create(days_from_now=-3)

    def _create(self, **fields):
        return rides.create_or_update_ride(
            {"rideData": _ride_data(**fields)}, self.ngo, self.clients
        )["rideId"]

    def test_public_rides_are_upcoming_and_soonest_first(self):
        result = rides.get_public_rides({}, None, self.clients)

        self.assertEqual([ride["id"] for ride in result["rides"]], [self.soon, self.far])
        self.assertIsInstance(result["rides"][0]["rideDate"], str)

    def test_public_rides_filters(self):
        result = rides.get_public_rides({"state": "Jalisco"}, None, self.clients)
        self.assertEqual([ride["id"] for ride in result["rides"]], [self.far])

        result = rides.get_public_rides({"level": "Experto"}, None, self.clients)
        self.assertEqual(result["rides"], [])

    def test_organizer_rides_newest_first(self):
        result = rides.get_organizer_rides({"organizerId": "uid-ngo"}, None, self.clients)

        self.assertEqual(
            [ride["id"] for ride in result["rides"]], [self.far, self.soon, self.past]
        )

    def test_get_ride_by_id(self):
        ride = rides.get_ride_by_id({"rideId": self.soon}, None, self.clients)
        self.assertEqual(ride["organizerName"], "Bici Vida")
        self.assertIsNone(rides.get_ride_by_id({"rideId": "nope"}, None, self.clients))

    def test_legacy_ngo_fields_are_read(self):
        ride_json = rides.ride_to_json(
            "legacy", {"title": "Vieja", "ngoId": "uid-ngo", "ngoName": "Bici Vida"}
        )

        self.assertEqual(ride_json["organizerId"], "uid-ngo")
        self.assertEqual(ride_json["organizerName"], "Bici Vida")
        self.assertNotIn("ngoId", ride_json)


if __name__ == "__main__":
    unittest.main()

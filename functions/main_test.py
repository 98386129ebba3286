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
# Standard library imports
import os
import unittest
from types import SimpleNamespace
from unittest.mock import patch

os.environ["BICI_DB_BACKEND"] = "memory"
os.environ["BICI_AUTH_BACKEND"] = "memory"
os.environ["BICI_STORAGE_BACKEND"] = "memory"
os.environ["BICI_ENFORCE_APP_CHECK"] = "false"

# Third-party library imports
from functions_framework import create_app

# Local application imports
from backend.config import get_settings
from backend.dependencies import get_clients, reset_clients

get_settings.cache_clear()

# This patch must be applied before importing 'main'
with patch("firebase_admin.initialize_app"):
    import main

MAIN_SOURCE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "main.py")


def _seed_bike(clients, serial_number="SN-100", owner_id="owner-1"):
    return clients.db.create_bike(
        {
            "serialNumber": serial_number,
            "brand": "Trek",
            "model": "Marlin 5",
            "ownerId": owner_id,
            "ownerFirstName": "Ana",
            "ownerLastName": "López",
            "ownerEmail": "ana@example.com",
            "ownerWhatsappPhone": "+52 55 1234 5678",
            "status": "En Regla",
            "statusHistory": [],
            "photoUrls": [],
        }
    )


class TestMainApi(unittest.TestCase):

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        get_settings.cache_clear()
        reset_clients()
        self.clients = get_clients()
        # Create a test client for the function using functions-framework.
        self.client = create_app("api", MAIN_SOURCE).test_client()

    def tearDown(self):
        reset_clients()

    def test_public_lookup_hides_owner_contact_details(self):
        # Arrange
        _seed_bike(self.clients)
        payload = {"action": "getPublicBikeBySerial", "data": {"serialNumber": "SN-100"}}

        # Act
        response = self.client.post("/", json={"data": payload})

        # Assert
        self.assertEqual(
            response.status_code,
            200,
            f"Request failed with status {response.status_code}. Body: {response.get_data(as_text=True)}",
        )
        # Note: @on_call wraps successful responses in a `result` key.
        result = response.get_json()["result"]
        self.assertEqual(result["serialNumber"], "SN-100")
        self.assertEqual(result["ownerFirstName"], "Ana")
        self.assertNotIn("ownerEmail", result)
        self.assertNotIn("ownerId", result)

    def test_public_lookup_of_unknown_serial_returns_null(self):
        payload = {"action": "getPublicBikeBySerial", "data": {"serialNumber": "NOPE"}}

        response = self.client.post("/", json={"data": payload})

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.get_json()["result"])

    def test_unknown_action_is_not_found(self):
        payload = {"action": "launchRocket", "data": {}}

        response = self.client.post("/", json={"data": payload})

        self.assertEqual(response.status_code, 404)
        response_data = response.get_json()
        self.assertEqual(response_data["error"]["status"], "NOT_FOUND")
        self.assertEqual(
            response_data["error"]["message"], "No se encontró la acción solicitada."
        )

    def test_create_bike_requires_authentication(self):
        payload = {
            "action": "createBike",
            "data": {"bikeData": {"serialNumber": "X1", "brand": "B", "model": "M"}},
        }

        response = self.client.post("/", json={"data": payload})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"]["status"], "UNAUTHENTICATED")

    def test_unexpected_errors_become_internal(self):
        payload = {"action": "getHomepageContent", "data": {}}

        with patch.object(
            self.clients.db, "get_homepage_content", side_effect=RuntimeError("boom")
        ):
            response = self.client.post("/", json={"data": payload})

        self.assertEqual(response.status_code, 500)
        response_data = response.get_json()
        self.assertEqual(response_data["error"]["status"], "INTERNAL")
        self.assertEqual(
            response_data["error"]["message"],
            "Ocurrió un error inesperado al ejecutar getHomepageContent.",
        )


class TestMainSetAdmin(unittest.TestCase):

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        get_settings.cache_clear()
        reset_clients()
        self.clients = get_clients()
        self.client = create_app("set_admin", MAIN_SOURCE).test_client()

    def tearDown(self):
        reset_clients()

    def test_first_admin_can_be_bootstrapped(self):
        self.clients.auth.add_user("uid-1", "root@example.com")

        response = self.client.post("/", json={"data": {"email": "root@example.com"}})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            self.clients.auth.users["uid-1"].custom_claims,
            {"admin": True, "role": "admin"},
        )
        self.assertTrue(self.clients.db.get_user("uid-1")["isAdmin"])

    def test_bootstrap_is_refused_once_an_admin_exists(self):
        self.clients.db.set_user("uid-0", {"role": "admin", "isAdmin": True})
        self.clients.auth.add_user("uid-1", "someone@example.com")

        response = self.client.post(
            "/", json={"data": {"email": "someone@example.com"}}
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"]["status"], "PERMISSION_DENIED")
        self.assertEqual(self.clients.auth.users["uid-1"].custom_claims, {})

    def test_missing_email_is_invalid(self):
        response = self.client.post("/", json={"data": {}})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["status"], "INVALID_ARGUMENT")


class TestCallerFromRequest(unittest.TestCase):

    def test_anonymous_request_has_no_caller(self):
        self.assertIsNone(main._caller_from_request(SimpleNamespace(auth=None)))

    def test_caller_carries_token_claims(self):
        request = SimpleNamespace(
            auth=SimpleNamespace(
                uid="uid-7", token={"email": "a@example.com", "admin": True}
            )
        )

        caller = main._caller_from_request(request)

        self.assertEqual(caller.uid, "uid-7")
        self.assertEqual(caller.email, "a@example.com")
        self.assertTrue(caller.is_admin)


if __name__ == "__main__":
    unittest.main()

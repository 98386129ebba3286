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

from firebase_functions import https_fn

from actions import bikes, transfers
from actions.testing_utils import add_user, make_clients, register_bike

ErrorCode = https_fn.FunctionsErrorCode


class TransferRequestTest(unittest.TestCase):

    def setUp(self):
        self.clients = make_clients()
        self.ana = add_user(
            self.clients, "uid-ana", "ana@example.com", firstName="Ana", lastName="L"
        )
        self.bob = add_user(
            self.clients,
            "uid-bob",
            "Bob@Example.com",
            firstName="Bob",
            lastName="Paz",
            whatsappPhone="+52 33 1111 2222",
        )
        self.bike_id = register_bike(self.clients, self.ana, "SN-TR")

    def _initiate(self, caller=None, **fields):
        data = {"bikeId": self.bike_id, "recipientEmail": "BOB@example.com"}
        data.update(fields)
        return transfers.initiate_transfer_request(
            data, caller or self.ana, self.clients
        )

    def _respond(self, request_id, action, caller):
        return transfers.respond_to_transfer_request(
            {"requestId": request_id, "action": action}, caller, self.clients
        )

    def test_initiate_stores_pending_request_with_lowercased_email(self):
        result = self._initiate(transferDocumentUrl="https://example.test/doc.pdf")

        self.assertTrue(result["success"])
        request = self.clients.db.get_transfer_request(result["requestId"])
        self.assertEqual(request["status"], "pending")
        self.assertEqual(request["toUserEmail"], "bob@example.com")
        self.assertEqual(request["fromOwnerId"], "uid-ana")
        self.assertEqual(request["serialNumber"], "SN-TR")

    def test_only_one_pending_request_per_bike(self):
        self._initiate()

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._initiate()
        self.assertEqual(ctx.exception.code, ErrorCode.ALREADY_EXISTS)

    def test_non_owner_cannot_initiate(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._initiate(caller=self.bob, recipientEmail="ana@example.com")
        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

    def test_stolen_bike_cannot_be_transferred(self):
        self.clients.db.update_bike(self.bike_id, {"status": "Robada"})

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._initiate()
        self.assertEqual(ctx.exception.code, ErrorCode.FAILED_PRECONDITION)

    def test_accept_moves_ownership_and_appends_history(self):
        request_id = self._initiate(
            transferDocumentUrl="https://example.test/factura.pdf",
            transferDocumentName="factura.pdf",
        )["requestId"]

        result = self._respond(request_id, "accepted", self.bob)

        self.assertTrue(result["success"])
        bike = self.clients.db.get_bike(self.bike_id)
        self.assertEqual(bike["ownerId"], "uid-bob")
        self.assertEqual(bike["ownerFirstName"], "Bob")
        self.assertEqual(bike["ownerLastName"], "Paz")
        self.assertEqual(bike["ownerWhatsappPhone"], "+52 33 1111 2222")
        self.assertEqual(bike["status"], "En Regla")
        last_entry = bike["statusHistory"][-1]
        self.assertEqual(last_entry["status"], "Transferida")
        self.assertEqual(
            last_entry["transferDocumentUrl"], "https://example.test/factura.pdf"
        )
        self.assertEqual(last_entry["transferDocumentName"], "factura.pdf")
        request = self.clients.db.get_transfer_request(request_id)
        self.assertEqual(request["status"], "accepted")
        self.assertIn("resolutionDate", request)

    def test_sender_cannot_accept(self):
        request_id = self._initiate()["requestId"]

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._respond(request_id, "accepted", self.ana)
        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)
        self.assertEqual(self.clients.db.get_bike(self.bike_id)["ownerId"], "uid-ana")

    def test_only_sender_can_cancel(self):
        request_id = self._initiate()["requestId"]

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._respond(request_id, "cancelled", self.bob)
        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

        self._respond(request_id, "cancelled", self.ana)
        self.assertEqual(
            self.clients.db.get_transfer_request(request_id)["status"], "cancelled"
        )

    def test_resolved_request_cannot_be_resolved_again(self):
        request_id = self._initiate()["requestId"]
        self._respond(request_id, "rejected", self.bob)

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._respond(request_id, "accepted", self.bob)
        self.assertEqual(ctx.exception.code, ErrorCode.FAILED_PRECONDITION)
        self.assertEqual(self.clients.db.get_bike(self.bike_id)["ownerId"], "uid-ana")

    def test_accept_fails_when_bike_changed_owner(self):
        request_id = self._initiate()["requestId"]
        self.clients.db.update_bike(self.bike_id, {"ownerId": "uid-someone-else"})

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._respond(request_id, "accepted", self.bob)
        self.assertEqual(ctx.exception.code, ErrorCode.FAILED_PRECONDITION)
        self.assertEqual(
            self.clients.db.get_transfer_request(request_id)["status"], "pending"
        )

    def test_accept_fails_when_bike_was_reported_stolen(self):
        request_id = self._initiate()["requestId"]
        bikes.report_bike_stolen(
            {
                "bikeId": self.bike_id,
                "theftData": {
                    "theftLocationState": "Jalisco",
                    "theftIncidentDetails": "Robada afuera del trabajo.",
                },
            },
            self.ana,
            self.clients,
        )

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._respond(request_id, "accepted", self.bob)
        self.assertEqual(ctx.exception.code, ErrorCode.FAILED_PRECONDITION)
        bike = self.clients.db.get_bike(self.bike_id)
        self.assertEqual(bike["status"], "Robada")
        self.assertEqual(bike["ownerId"], "uid-ana")
        self.assertIsNotNone(bike["theftDetails"])
        self.assertEqual(
            [entry["status"] for entry in bike["statusHistory"]], ["En Regla", "Robada"]
        )
        self.assertEqual(
            self.clients.db.get_transfer_request(request_id)["status"], "pending"
        )

    def test_unknown_request_and_invalid_action(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._respond("missing", "accepted", self.bob)
        self.assertEqual(ctx.exception.code, ErrorCode.NOT_FOUND)

        with self.assertRaises(https_fn.HttpsError) as ctx:
            self._respond("missing", "pending", self.bob)
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)

    def test_user_requests_include_sent_and_received(self):
        sent_id = self._initiate()["requestId"]
        bob_bike = register_bike(self.clients, self.bob, "SN-BOB")
        received_id = transfers.initiate_transfer_request(
            {"bikeId": bob_bike, "recipientEmail": "ana@example.com"},
            self.bob,
            self.clients,
        )["requestId"]

        result = transfers.get_user_transfer_requests({}, self.ana, self.clients)

        ids = [request["id"] for request in result["requests"]]
        self.assertEqual(sorted(ids), sorted([sent_id, received_id]))
        self.assertEqual(ids[0], received_id)
        self.assertIsInstance(result["requests"][0]["requestDate"], str)


if __name__ == "__main__":
    unittest.main()

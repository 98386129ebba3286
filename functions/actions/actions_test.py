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
from unittest.mock import patch

from firebase_functions import https_fn
from google.api_core import exceptions

import actions
from actions import homepage
from actions.testing_utils import add_user, make_caller, make_clients

ErrorCode = https_fn.FunctionsErrorCode


class DispatchTest(unittest.TestCase):

    def setUp(self):
        self.clients = make_clients()
        self.ana = add_user(self.clients, "uid-ana", "ana@example.com", firstName="Ana")

    def test_routes_action_to_handler(self):
        result = actions.dispatch(
            "createBike",
            {"bikeData": {"serialNumber": "SN-D", "brand": "Trek", "model": "FX"}},
            self.ana,
            self.clients,
        )

        self.assertIn("bikeId", result)
        self.assertIsNotNone(self.clients.db.get_bike(result["bikeId"]))

    def test_unwraps_doubly_wrapped_payloads(self):
        actions.dispatch(
            "createBike",
            {"data": {"bikeData": {"serialNumber": "SN-W", "brand": "B", "model": "M"}}},
            self.ana,
            self.clients,
        )

        self.assertIsNotNone(self.clients.db.find_bike_by_serial("SN-W"))

    def test_unknown_action(self):
        for action in ("flyBike", None, 42):
            with self.assertRaises(https_fn.HttpsError) as ctx:
                actions.dispatch(action, {}, self.ana, self.clients)
            self.assertEqual(ctx.exception.code, ErrorCode.NOT_FOUND)
            self.assertEqual(
                ctx.exception.message, "No se encontró la acción solicitada."
            )

    def test_coded_errors_pass_through(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            actions.dispatch("getMyBikes", {}, None, self.clients)
        self.assertEqual(ctx.exception.code, ErrorCode.UNAUTHENTICATED)

    def test_unexpected_errors_become_internal(self):
        with patch.object(self.clients.db, "list_bikes", side_effect=RuntimeError("db down")):
            with self.assertRaises(https_fn.HttpsError) as ctx:
                actions.dispatch("getMyBikes", {}, self.ana, self.clients)
        self.assertEqual(ctx.exception.code, ErrorCode.INTERNAL)
        self.assertEqual(
            ctx.exception.message, "Ocurrió un error inesperado al ejecutar getMyBikes."
        )

    def test_quota_errors_become_resource_exhausted(self):
        with patch.object(
            self.clients.db, "list_bikes", side_effect=exceptions.TooManyRequests("quota")
        ):
            with self.assertRaises(https_fn.HttpsError) as ctx:
                actions.dispatch("getMyBikes", {}, self.ana, self.clients)
        self.assertEqual(ctx.exception.code, ErrorCode.RESOURCE_EXHAUSTED)


class HomepageContentTest(unittest.TestCase):

    def setUp(self):
        self.clients = make_clients()
        self.admin = make_caller("uid-admin", "admin@example.com", admin=True)

    def test_content_is_null_until_set(self):
        self.assertIsNone(homepage.get_homepage_content({}, None, self.clients))

    def test_admin_update_merges_and_stamps(self):
        homepage.update_homepage_content(
            {"heroTitle": "Registra tu bici"}, self.admin, self.clients
        )
        homepage.update_homepage_content(
            {"heroSubtitle": "Gratis", "lastUpdated": "ignored"}, self.admin, self.clients
        )

        content = homepage.get_homepage_content({}, None, self.clients)
        self.assertEqual(content["heroTitle"], "Registra tu bici")
        self.assertEqual(content["heroSubtitle"], "Gratis")
        self.assertIsInstance(content["lastUpdated"], str)
        self.assertNotEqual(content["lastUpdated"], "ignored")

    def test_non_admin_cannot_update(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            homepage.update_homepage_content(
                {"heroTitle": "x"}, make_caller("uid-ana", "ana@example.com"), self.clients
            )
        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

    def test_empty_update_is_invalid(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            homepage.update_homepage_content({}, self.admin, self.clients)
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)


if __name__ == "__main__":
    unittest.main()

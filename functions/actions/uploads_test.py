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

from actions import uploads
from actions.testing_utils import make_caller, make_clients

ErrorCode = https_fn.FunctionsErrorCode


class UploadUrlTest(unittest.TestCase):

    def setUp(self):
        self.clients = make_clients()
        self.ana = make_caller("uid-ana", "ana@example.com")

    def test_issues_presigned_url_under_callers_folder(self):
        result = uploads.get_upload_url(
            {"kind": "bikePhoto", "fileName": "mi bici (1).jpg", "contentType": "image/jpeg"},
            self.ana,
            self.clients,
        )

        path = result["storagePath"]
        self.assertTrue(path.startswith("bike_images/uid-ana/"))
        self.assertTrue(path.endswith("-mi_bici_1_.jpg"))
        self.assertIn(path, result["uploadUrl"])
        self.assertIn("op=put", result["uploadUrl"])
        self.assertIn("expires=900", result["uploadUrl"])

    def test_rejects_unknown_kind_and_anonymous_callers(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            uploads.get_upload_url(
                {"kind": "avatar", "fileName": "a.png"}, self.ana, self.clients
            )
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)

        with self.assertRaises(https_fn.HttpsError) as ctx:
            uploads.get_upload_url(
                {"kind": "bikePhoto", "fileName": "a.png"}, None, self.clients
            )
        self.assertEqual(ctx.exception.code, ErrorCode.UNAUTHENTICATED)

    def test_sponsor_logos_are_admin_only(self):
        with self.assertRaises(https_fn.HttpsError) as ctx:
            uploads.get_upload_url(
                {"kind": "sponsorLogo", "fileName": "logo.png"}, self.ana, self.clients
            )
        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

        admin = make_caller("uid-admin", "admin@example.com", admin=True)
        result = uploads.get_upload_url(
            {"kind": "sponsorLogo", "fileName": "logo.png"}, admin, self.clients
        )
        self.assertTrue(result["storagePath"].startswith("sponsors/uid-admin/"))

    def test_delete_uploaded_file_by_owner_only(self):
        path = "bike_documents/uid-ana/abc-factura.pdf"
        bob = make_caller("uid-bob", "bob@example.com")

        with self.assertRaises(https_fn.HttpsError) as ctx:
            uploads.delete_uploaded_file({"storagePath": path}, bob, self.clients)
        self.assertEqual(ctx.exception.code, ErrorCode.PERMISSION_DENIED)

        uploads.delete_uploaded_file({"storagePath": path}, self.ana, self.clients)
        self.assertEqual(self.clients.storage.deleted_paths, [path])


class StoragePathTest(unittest.TestCase):

    def test_extracts_path_from_download_url(self):
        url = (
            "https://firebasestorage.googleapis.com/v0/b/demo.appspot.com/o/"
            "bike_images%2Fuid-ana%2Ffoto%201.jpg?alt=media&token=abc"
        )
        self.assertEqual(
            uploads.get_path_from_storage_url(url), "bike_images/uid-ana/foto 1.jpg"
        )

    def test_non_storage_urls_yield_none(self):
        self.assertIsNone(uploads.get_path_from_storage_url("https://example.com/a.jpg"))
        self.assertIsNone(uploads.get_path_from_storage_url(""))

    def test_safe_file_name(self):
        self.assertEqual(uploads.safe_file_name("  ../../etc/passwd "), "etc_passwd")
        self.assertEqual(uploads.safe_file_name("???"), "archivo")
        self.assertEqual(len(uploads.safe_file_name("a" * 500)), 200)


if __name__ == "__main__":
    unittest.main()

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


def calculate_bike_completeness(bike: dict | None) -> int:
    """
    Scores how complete a bike record is, from 0 to 100.

    Core details (serial number, brand and model) count for 30, at least one
    photo for 30 and an ownership document for 40.
    """
    if not bike:
        return 0

    completeness = 0
    if bike.get("serialNumber") and bike.get("brand") and bike.get("model"):
        completeness += 30

    photo_urls = [url for url in bike.get("photoUrls") or [] if url and url.strip()]
    if photo_urls:
        completeness += 30

    ownership_document_url = bike.get("ownershipDocumentUrl") or ""
    if ownership_document_url.strip():
        completeness += 40

    return min(completeness, 100)

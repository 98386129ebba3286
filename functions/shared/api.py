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

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class CallerContext:
    """Identity of the caller, built from a verified Firebase ID token."""

    uid: str
    token: dict = field(default_factory=dict)

    @property
    def email(self) -> Optional[str]:
        return self.token.get("email")

    @property
    def is_admin(self) -> bool:
        return self.token.get("admin") is True

    @property
    def role(self) -> Optional[str]:
        return self.token.get("role")


@dataclass
class CreateBikeResult:
    bike_id: str


@dataclass
class ActionResult:
    """Generic acknowledgement returned by state-changing actions."""

    success: bool
    message: str


@dataclass
class MessageResult:
    message: str


@dataclass
class CreateAccountResult:
    uid: str
    message: str


@dataclass
class RideResult:
    ride_id: str
    message: str


@dataclass
class UploadUrlResult:
    upload_url: str
    storage_path: str


@dataclass
class TransferResolution:
    """Writes to apply when a transfer request is resolved."""

    request_updates: dict
    bike_updates: Optional[dict] = None
    history_entry: Optional[dict] = None
    result: Any = None

#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

"""Server identity, credentials and protocol level results."""

import dataclasses
import datetime
import typing

from oslo_utils import timeutils

from firmgate.common import health_states


@dataclasses.dataclass(frozen=True)
class ServerIdentity:
    """Addressing snapshot of a server, refreshed by discovery."""

    host: str
    fqdn: typing.Optional[str] = None
    model: typing.Optional[str] = None
    service_tag: typing.Optional[str] = None
    generation: typing.Optional[str] = None
    firmware_version: typing.Optional[str] = None


@dataclasses.dataclass(frozen=True)
class Credentials:
    """Credentials passed by value into protocol calls, never persisted."""

    username: str
    password: typing.Optional[str] = dataclasses.field(default=None,
                                                       repr=False)
    private_key: typing.Optional[str] = dataclasses.field(default=None,
                                                          repr=False)
    port: typing.Optional[int] = None


@dataclasses.dataclass
class ProtocolCapability:
    protocol: str
    supported: bool
    firmware_version: typing.Optional[str] = None
    manager_type: typing.Optional[str] = None
    generation: typing.Optional[str] = None
    update_modes: typing.FrozenSet[str] = frozenset()
    raw: typing.Optional[dict] = None

    def supports(self, mode):
        return self.supported and mode in self.update_modes


@dataclasses.dataclass
class ProtocolHealth:
    protocol: str
    status: health_states.ProtocolStatus
    latency_ms: float = 0.0
    checked_at: datetime.datetime = dataclasses.field(
        default_factory=timeutils.utcnow)
    details: typing.Optional[dict] = None
    error_classification: typing.Optional[str] = None


@dataclasses.dataclass
class ProtocolDetectionResult:
    identity: ServerIdentity
    capabilities: typing.List[ProtocolCapability]
    healthiest: typing.Optional[ProtocolCapability] = None


@dataclasses.dataclass
class EnhancedCapabilities:
    """Vendor intelligence gathered from the management controller."""

    generation: str
    license_level: str
    certificate_status: str
    job_queue_status: str
    network_update_supported: bool
    firmware_version: typing.Optional[str] = None
    supported_services: typing.List[str] = dataclasses.field(
        default_factory=list)
    power_state: typing.Optional[str] = None
    health: typing.Optional[str] = None

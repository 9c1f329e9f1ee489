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

"""Firmware update requests and results."""

import dataclasses
import datetime
import typing

import jsonschema

from firmgate.common import exception
from firmgate.common.i18n import _
from firmgate.common import protocols
from firmgate.objects import protocol as protocol_objects

_UPDATE_REQUEST_SCHEMA = {
    "$schema": "http://json-schema.org/schema#",
    "title": "firmware update request schema",
    "type": "object",
    "required": ["host", "mode", "apply_time"],
    "properties": {
        "host": {"type": "string", "minLength": 1},
        "mode": {"type": "string", "enum": list(protocols.UPDATE_MODES)},
        "apply_time": {"type": "string",
                       "enum": list(protocols.APPLY_TIMES)},
        "repository_url": {"type": ["string", "null"], "minLength": 1},
        "maintenance_window_duration": {"type": ["integer", "null"],
                                        "minimum": 1},
        "components": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "image_uri": {"type": ["string", "null"],
                                  "minLength": 1},
                    "file_name": {"type": ["string", "null"]},
                    "checksum": {"type": ["string", "null"]},
                },
            },
        },
    },
}


@dataclasses.dataclass
class FirmwareComponent:
    id: str
    image_uri: typing.Optional[str] = None
    stream: typing.Optional[typing.BinaryIO] = dataclasses.field(
        default=None, repr=False)
    file_name: typing.Optional[str] = None
    checksum: typing.Optional[str] = None


@dataclasses.dataclass
class FirmwareUpdateRequest:
    host: str
    credentials: protocol_objects.Credentials
    mode: str
    components: typing.List[FirmwareComponent] = dataclasses.field(
        default_factory=list)
    repository_url: typing.Optional[str] = None
    apply_time: str = protocols.APPLY_IMMEDIATE
    maintenance_window_start: typing.Optional[datetime.datetime] = None
    maintenance_window_duration: typing.Optional[int] = None
    additional_params: dict = dataclasses.field(default_factory=dict)

    def validate(self):
        """Validate the request shape.

        Mode specific requirements (image URI, stream) are checked by the
        protocol executing the request.

        :raises: InvalidParameterValue when the request is malformed.
        """
        document = {
            'host': self.host,
            'mode': self.mode,
            'apply_time': self.apply_time,
            'repository_url': self.repository_url,
            'maintenance_window_duration': self.maintenance_window_duration,
            'components': [{'id': c.id, 'image_uri': c.image_uri,
                            'file_name': c.file_name,
                            'checksum': c.checksum}
                           for c in self.components],
        }
        try:
            jsonschema.validate(document, _UPDATE_REQUEST_SCHEMA)
        except jsonschema.ValidationError as err:
            raise exception.InvalidParameterValue(
                _('Invalid firmware update request for %(host)s. '
                  'Errors: %(err)s') % {'host': self.host,
                                        'err': err.message})

        if (self.apply_time == protocols.APPLY_AT_MAINTENANCE_WINDOW
                and self.maintenance_window_start is None):
            raise exception.MissingParameterValue(
                _('Apply time %s requires a maintenance window start.')
                % self.apply_time)

    def with_credentials(self, credentials):
        return dataclasses.replace(self, credentials=credentials)

    @property
    def identity(self):
        return protocol_objects.ServerIdentity(host=self.host)


@dataclasses.dataclass
class InventoryChanges:
    added: typing.List[dict] = dataclasses.field(default_factory=list)
    removed: typing.List[dict] = dataclasses.field(default_factory=list)
    updated: typing.List[dict] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class FirmwareUpdateResult:
    protocol: str
    status: str
    task_location: typing.Optional[str] = None
    job_id: typing.Optional[str] = None
    messages: typing.List[str] = dataclasses.field(default_factory=list)
    started_at: typing.Optional[datetime.datetime] = None
    completed_at: typing.Optional[datetime.datetime] = None
    percent_complete: typing.Optional[int] = None
    inventory_changes: typing.Optional[InventoryChanges] = None
    reboot_required: bool = False
    metadata: dict = dataclasses.field(default_factory=dict)

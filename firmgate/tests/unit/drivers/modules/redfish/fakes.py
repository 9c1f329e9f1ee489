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

"""In-memory stand-in for a Redfish session used by the unit tests."""

from unittest import mock

from firmgate.common import exception
from firmgate.common import protocols
from firmgate.drivers.modules.redfish import utils as redfish_utils


class FakeSession(object):
    """Serves canned resources keyed by path.

    A resource given as an exception instance is raised on access, a
    missing path raises ProtocolResourceNotFound.
    """

    def __init__(self, resources=None, host='10.0.0.1'):
        self.host = host
        self.operation = 'test'
        self.resources = dict(resources or {})
        self.posts = []
        self.location = '/redfish/v1/TaskService/Tasks/JID_123'

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass

    def get_json(self, path):
        try:
            value = self.resources[path]
        except KeyError:
            raise exception.ProtocolResourceNotFound(
                protocol=protocols.REDFISH, host=self.host, resource=path)
        if isinstance(value, list):
            # Successive reads return successive entries.
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, Exception):
            raise value
        return value

    get_members = redfish_utils.RedfishSession.get_members
    get_first_member = redfish_utils.RedfishSession.get_first_member

    def post(self, path, payload=None, **kwargs):
        self.posts.append((path, payload, kwargs))
        response = mock.Mock(headers={'Location': self.location})
        return response


def collection(*paths):
    return {'Members': [{'@odata.id': path} for path in paths]}

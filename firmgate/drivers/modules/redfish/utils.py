# Copyright 2017 Red Hat, Inc.
# All Rights Reserved.
#
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

"""Redfish HTTP session handling and error translation."""

from urllib import parse as urlparse

from oslo_log import log
import requests
import sushy

from firmgate.common import exception
from firmgate.common import protocols
from firmgate.conf import CONF

LOG = log.getLogger(__name__)

SERVICE_ROOT = '/redfish/v1'
UPDATE_SERVICE = '/redfish/v1/UpdateService'
SOFTWARE_INVENTORY = '/redfish/v1/UpdateService/SoftwareInventory'


def normalize_address(host):
    """Return the base URL of a BMC given its host or URL."""
    if '://' not in host:
        host = 'https://%s' % host
    return host.rstrip('/')


def relative_path(location):
    """Strip scheme and host from a Location header value."""
    if not location:
        return location
    parsed = urlparse.urlparse(location)
    path = parsed.path or location
    if parsed.query:
        path = '%s?%s' % (path, parsed.query)
    return path


class RedfishSession(object):
    """A short lived, authenticated connection to a Redfish service.

    Usable as a context manager; the underlying HTTP session is closed on
    exit. Every sushy and requests failure is translated into a firmgate
    exception carrying the host and operation.
    """

    def __init__(self, host, credentials, operation='request'):
        self.host = host
        self.operation = operation
        self._connector = sushy.connector.Connector(
            normalize_address(host), verify=CONF.redfish.verify_ca)
        self._connector.set_http_basic_auth(credentials.username,
                                            credentials.password)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self._connector.close()

    def _translate(self, path, error):
        kwargs = {'protocol': protocols.REDFISH, 'host': self.host,
                  'operation': self.operation, 'error': error}
        if isinstance(error, sushy.exceptions.AccessError):
            return exception.ProtocolAuthenticationFailure(**kwargs)
        if isinstance(error, sushy.exceptions.ResourceNotFoundError):
            return exception.ProtocolResourceNotFound(
                protocol=protocols.REDFISH, host=self.host, resource=path)
        if isinstance(error, sushy.exceptions.HTTPError):
            return exception.ProtocolError(
                classification=exception.classify_status(error.status_code),
                details={'status_code': error.status_code,
                         'body': error.body}, **kwargs)
        if isinstance(error, sushy.exceptions.ConnectionError):
            return exception.ProtocolConnectionError(**kwargs)
        if isinstance(error, requests.exceptions.Timeout):
            return exception.ProtocolTimeout(
                protocol=protocols.REDFISH, host=self.host,
                operation=self.operation,
                timeout=CONF.redfish.request_timeout)
        return exception.ProtocolError(
            classification=exception.classify_error(error), **kwargs)

    def _call(self, method, path, **kwargs):
        kwargs.setdefault('timeout', CONF.redfish.request_timeout)
        try:
            return getattr(self._connector, method)(path, **kwargs)
        except (sushy.exceptions.SushyError,
                requests.exceptions.RequestException) as e:
            LOG.debug('Redfish %(method)s %(path)s on %(host)s failed: '
                      '%(error)s', {'method': method.upper(), 'path': path,
                                    'host': self.host, 'error': e})
            raise self._translate(path, e) from e

    def get_json(self, path):
        """Fetch a resource and return its JSON body as a dict."""
        response = self._call('get', path)
        try:
            return response.json()
        except ValueError as e:
            raise exception.ProtocolError(
                protocol=protocols.REDFISH, host=self.host,
                operation=self.operation,
                error='invalid JSON at %s: %s' % (path, e),
                classification=exception.PERMANENT) from e

    def get_members(self, path):
        """Fetch every member of a collection."""
        collection = self.get_json(path)
        return [self.get_json(member['@odata.id'])
                for member in collection.get('Members', [])
                if '@odata.id' in member]

    def get_first_member(self, path):
        collection = self.get_json(path)
        members = collection.get('Members') or []
        if not members:
            return {}
        return self.get_json(members[0]['@odata.id'])

    def post(self, path, payload=None, **kwargs):
        """POST to an action or collection, returning the response."""
        return self._call('post', path, data=payload, **kwargs)

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

"""
WS-Management protocol client for Dell lifecycle controllers.

Talks SOAP over HTTPS to the ``/wsman`` endpoint and drives
``DCIM_SoftwareInstallationService``.
"""

import uuid
from xml.etree import ElementTree

from oslo_log import log as logging
from oslo_utils import timeutils
import requests

from firmgate.common import exception
from firmgate.common import generations
from firmgate.common.i18n import _
from firmgate.common import protocols
from firmgate.common import utils
from firmgate.conf import CONF
from firmgate.drivers import base
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects

LOG = logging.getLogger(__name__)

_SOAP_ENVELOPE_URI = 'http://www.w3.org/2003/05/soap-envelope'
_ADDRESSING_URI = 'http://schemas.xmlsoap.org/ws/2004/08/addressing'
_WSMAN_URI = 'http://schemas.dmtf.org/wbem/wsman/1/wsman.xsd'
_IDENTITY_URI = ('http://schemas.dmtf.org/wbem/wsman/identity/1/'
                 'wsmanidentity.xsd')
_ANONYMOUS_URI = ('http://schemas.xmlsoap.org/ws/2004/08/addressing/role/'
                  'anonymous')
_GET_ACTION = 'http://schemas.xmlsoap.org/ws/2004/09/transfer/Get'

SOFTWARE_INSTALLATION_URI = ('http://schemas.dell.com/wbem/wscim/1/'
                             'cim-schema/2/DCIM_SoftwareInstallationService')
LIFECYCLE_JOB_URI = ('http://schemas.dell.com/wbem/wscim/1/cim-schema/2/'
                     'DCIM_LifecycleJob')

_SOFTWARE_INSTALLATION_SELECTORS = {
    'SystemCreationClassName': 'DCIM_ComputerSystem',
    'SystemName': 'IDRAC:ID',
    'CreationClassName': 'DCIM_SoftwareInstallationService',
    'Name': 'DCIM:SoftwareUpdate',
}

# ReturnValue constants
RET_SUCCESS = '0'
RET_ERROR = '2'
RET_CREATED = '4096'

JOB_SUCCESS_STATES = frozenset(['Completed'])
JOB_FAILURE_STATES = frozenset(['Failed', 'Completed with Errors',
                                'Cancelled'])

for _prefix, _uri in (('s', _SOAP_ENVELOPE_URI), ('wsa', _ADDRESSING_URI),
                      ('wsman', _WSMAN_URI)):
    ElementTree.register_namespace(_prefix, _uri)


def _local_name(tag):
    return tag.rsplit('}', 1)[-1]


def find_text(root, name):
    """Return the text of the first element with the given local name."""
    for element in root.iter():
        if _local_name(element.tag) == name and element.text:
            return element.text.strip()
    return None


def find_selector(root, name):
    for element in root.iter():
        if (_local_name(element.tag) == 'Selector'
                and element.get('Name') == name):
            return (element.text or '').strip()
    return None


def build_envelope(resource_uri, action=None, selectors=None, body=None):
    """Build a WS-Management SOAP envelope.

    :param resource_uri: URI of the resource.
    :param action: WS-Addressing action, omitted for Identify.
    :param selectors: dictionary of selectors.
    :param body: optional Element placed in the SOAP body.
    :returns: the serialized envelope as bytes.
    """
    envelope = ElementTree.Element('{%s}Envelope' % _SOAP_ENVELOPE_URI)
    header = ElementTree.SubElement(envelope,
                                    '{%s}Header' % _SOAP_ENVELOPE_URI)
    if action:
        ElementTree.SubElement(
            header, '{%s}Action' % _ADDRESSING_URI).text = action
        ElementTree.SubElement(
            header, '{%s}To' % _ADDRESSING_URI).text = 'wsman'
        ElementTree.SubElement(
            header, '{%s}ResourceURI' % _WSMAN_URI).text = resource_uri
        ElementTree.SubElement(
            header, '{%s}MessageID' % _ADDRESSING_URI).text = (
                'uuid:%s' % uuid.uuid4())
        reply_to = ElementTree.SubElement(header,
                                          '{%s}ReplyTo' % _ADDRESSING_URI)
        ElementTree.SubElement(
            reply_to, '{%s}Address' % _ADDRESSING_URI).text = _ANONYMOUS_URI
    if selectors:
        selector_set = ElementTree.SubElement(
            header, '{%s}SelectorSet' % _WSMAN_URI)
        for name, value in sorted(selectors.items()):
            selector = ElementTree.SubElement(
                selector_set, '{%s}Selector' % _WSMAN_URI, Name=name)
            selector.text = value
    soap_body = ElementTree.SubElement(envelope,
                                       '{%s}Body' % _SOAP_ENVELOPE_URI)
    if body is not None:
        soap_body.append(body)
    return ElementTree.tostring(envelope, encoding='utf-8')


def build_input(method, properties):
    """Build the ``<method>_INPUT`` body of an invoke request.

    List values are repeated as sibling elements.
    """
    element = ElementTree.Element('{%s}%s_INPUT'
                                  % (SOFTWARE_INSTALLATION_URI, method))
    for name, value in properties.items():
        values = value if isinstance(value, list) else [value]
        for item in values:
            ElementTree.SubElement(
                element, '{%s}%s' % (SOFTWARE_INSTALLATION_URI, name)
            ).text = str(item)
    return element


class WSManConnection(object):
    """Sends WS-Management requests to a single host."""

    def __init__(self, host, credentials, operation='request'):
        self.host = host
        self.operation = operation
        self._auth = (credentials.username, credentials.password or '')
        self._url = '%(scheme)s://%(host)s:%(port)s%(path)s' % {
            'scheme': CONF.wsman.protocol, 'host': host,
            'port': credentials.port or CONF.wsman.port,
            'path': CONF.wsman.path}

    def _error(self, cls=exception.ProtocolError, **kwargs):
        kwargs.setdefault('operation', self.operation)
        return cls(protocol=protocols.WSMAN, host=self.host, **kwargs)

    def send(self, envelope):
        """POST an envelope and return the parsed response root."""
        try:
            response = requests.post(
                self._url, data=envelope, auth=self._auth,
                headers={'Content-Type':
                         'application/soap+xml;charset=UTF-8'},
                verify=CONF.wsman.verify_ca,
                timeout=CONF.wsman.request_timeout)
        except requests.exceptions.Timeout as e:
            raise self._error(exception.ProtocolTimeout,
                              timeout=CONF.wsman.request_timeout) from e
        except requests.exceptions.ConnectionError as e:
            raise self._error(exception.ProtocolConnectionError,
                              error=e) from e

        if response.status_code in (401, 403):
            raise self._error(exception.ProtocolAuthenticationFailure,
                              error='HTTP %s' % response.status_code)
        if response.status_code >= 400:
            raise self._error(
                error=_('request failed with HTTP %s')
                % response.status_code,
                classification=exception.classify_status(
                    response.status_code),
                details={'status_code': response.status_code,
                         'body': response.text})
        try:
            return ElementTree.fromstring(response.content)
        except ElementTree.ParseError as e:
            raise self._error(error=_('malformed response: %s') % e,
                              classification=exception.PERMANENT) from e

    def identify(self):
        body = ElementTree.Element('{%s}Identify' % _IDENTITY_URI)
        root = self.send(build_envelope(_IDENTITY_URI, body=body))
        return {'vendor': find_text(root, 'ProductVendor'),
                'version': find_text(root, 'ProductVersion')}

    def invoke(self, resource_uri, method, selectors, properties):
        """Invoke a method and return its job id.

        :raises: ProtocolRequestRejected when the controller refuses.
        """
        envelope = build_envelope(resource_uri,
                                  action='%s/%s' % (resource_uri, method),
                                  selectors=selectors,
                                  body=build_input(method, properties))
        root = self.send(envelope)
        return_value = find_text(root, 'ReturnValue')
        if return_value not in (RET_SUCCESS, RET_CREATED):
            raise self._error(
                exception.ProtocolRequestRejected,
                error=find_text(root, 'Message') or _(
                    '%(method)s returned %(value)s') % {
                        'method': method, 'value': return_value},
                details={'message_id': find_text(root, 'MessageID')})
        return find_selector(root, 'InstanceID') or find_text(root, 'JobID')

    def get(self, resource_uri, selectors):
        return self.send(build_envelope(resource_uri, action=_GET_ACTION,
                                        selectors=selectors))


class WSManProtocolClient(base.ProtocolClient):

    protocol = protocols.WSMAN
    priority = protocols.PRIORITIES[protocols.WSMAN]
    update_modes = frozenset([protocols.SIMPLE_UPDATE,
                              protocols.INSTALL_FROM_REPOSITORY])

    def _detect(self, identity, credentials):
        info = WSManConnection(identity.host, credentials,
                               'detect').identify()
        return protocol_objects.ProtocolCapability(
            protocol=self.protocol,
            supported=True,
            firmware_version=info['version'],
            manager_type=info['vendor'],
            generation=generations.detect_generation_from_product(
                info['version'] or info['vendor']),
            update_modes=self.update_modes,
            raw=info)

    def _probe(self, identity, credentials):
        WSManConnection(identity.host, credentials, 'health').identify()

    def perform_firmware_update(self, request):
        self.check_mode(request)
        if request.mode == protocols.SIMPLE_UPDATE:
            component = request.components[0] if request.components else None
            if component is None or not component.image_uri:
                raise exception.MissingParameterValue(
                    _('InstallFromURI on %s requires an image URI')
                    % request.host)
            method = 'InstallFromURI'
            properties = {'URI': component.image_uri}
            targets = request.additional_params.get('targets')
            if targets:
                properties['Target'] = list(targets)
        else:
            method = 'InstallFromRepository'
            properties = {
                'IPAddress': request.repository_url
                or CONF.redfish.default_catalog_url,
                'ApplyUpdate': 'True',
                'RebootNeeded': str(request.apply_time
                                    == protocols.APPLY_IMMEDIATE),
            }

        started_at = timeutils.utcnow()
        connection = WSManConnection(request.host, request.credentials,
                                     'firmware update')
        job_id = connection.invoke(SOFTWARE_INSTALLATION_URI, method,
                                   _SOFTWARE_INSTALLATION_SELECTORS,
                                   properties)
        LOG.info('%(method)s on %(host)s created job %(job)s',
                 {'method': method, 'host': request.host, 'job': job_id})
        return firmware_objects.FirmwareUpdateResult(
            protocol=self.protocol, status=protocols.QUEUED, job_id=job_id,
            started_at=started_at)

    def wait_for_completion(self, request, result, cancel_event=None):
        if not result.job_id:
            return result
        connection = WSManConnection(request.host, request.credentials,
                                     'job poll')

        def _fetch():
            root = connection.get(LIFECYCLE_JOB_URI,
                                  {'InstanceID': result.job_id})
            return {'state': find_text(root, 'JobStatus') or '',
                    'message': find_text(root, 'Message')}

        state = utils.poll_until(
            _fetch,
            lambda s: s['state'] in JOB_SUCCESS_STATES | JOB_FAILURE_STATES,
            attempts=CONF.wsman.job_poll_attempts,
            interval=CONF.wsman.job_poll_interval,
            task=result.job_id, host=request.host,
            cancel_event=cancel_event, retry_on=exception.is_retryable)

        result.completed_at = timeutils.utcnow()
        result.status = (protocols.COMPLETED
                         if state['state'] in JOB_SUCCESS_STATES
                         else protocols.FAILED)
        if state['message']:
            result.messages.append(state['message'])
        result.metadata['task_state'] = state['state']
        return result

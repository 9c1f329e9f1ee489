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

from unittest import mock
from xml.etree import ElementTree

import requests

from firmgate.common import exception
from firmgate.common import generations
from firmgate.common import protocols
from firmgate.drivers.modules import wsman
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects
from firmgate.tests import base

IDENTITY = protocol_objects.ServerIdentity(host='10.0.0.1')
CREDS = protocol_objects.Credentials(username='root', password='calvin')

IDENTIFY_RESPONSE = """<?xml version="1.0"?>
<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope"
    xmlns:wsmid="%s">
  <s:Body>
    <wsmid:IdentifyResponse>
      <wsmid:ProductVendor>Dell Inc.</wsmid:ProductVendor>
      <wsmid:ProductVersion>iDRAC9</wsmid:ProductVersion>
    </wsmid:IdentifyResponse>
  </s:Body>
</s:Envelope>""" % wsman._IDENTITY_URI

INVOKE_RESPONSE = """<?xml version="1.0"?>
<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope"
    xmlns:n1="http://schemas.dell.com/wbem/wscim/1/cim-schema/2/x"
    xmlns:wsman="http://schemas.dmtf.org/wbem/wsman/1/wsman.xsd">
  <s:Body>
    <n1:InstallFromURI_OUTPUT>
      <n1:Job>
        <wsman:SelectorSet>
          <wsman:Selector Name="InstanceID">%(job)s</wsman:Selector>
        </wsman:SelectorSet>
      </n1:Job>
      <n1:ReturnValue>%(value)s</n1:ReturnValue>
      <n1:Message>%(message)s</n1:Message>
      <n1:MessageID>SUP029</n1:MessageID>
    </n1:InstallFromURI_OUTPUT>
  </s:Body>
</s:Envelope>"""

JOB_RESPONSE = """<?xml version="1.0"?>
<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope"
    xmlns:n1="http://schemas.dell.com/wbem/wscim/1/cim-schema/2/x">
  <s:Body>
    <n1:DCIM_LifecycleJob>
      <n1:JobStatus>%(status)s</n1:JobStatus>
      <n1:Message>%(message)s</n1:Message>
    </n1:DCIM_LifecycleJob>
  </s:Body>
</s:Envelope>"""


def _response(content, status_code=200):
    if isinstance(content, str):
        content = content.encode('utf-8')
    return mock.Mock(status_code=status_code, content=content,
                     text=content.decode('utf-8'))


def _invoke(job='JID_001', value='4096', message='Job created'):
    return _response(INVOKE_RESPONSE % {'job': job, 'value': value,
                                        'message': message})


def _job(status, message='Done'):
    return _response(JOB_RESPONSE % {'status': status, 'message': message})


def _request(mode=protocols.SIMPLE_UPDATE, **kwargs):
    kwargs.setdefault('components', [firmware_objects.FirmwareComponent(
        id='BIOS', image_uri='http://repo/BIOS.exe')])
    return firmware_objects.FirmwareUpdateRequest(
        host='10.0.0.1', credentials=CREDS, mode=mode, **kwargs)


class EnvelopeTestCase(base.TestCase):

    def test_build_envelope(self):
        body = wsman.build_input('InstallFromURI',
                                 {'URI': 'http://repo/BIOS.exe',
                                  'Target': ['a', 'b']})
        envelope = wsman.build_envelope(
            wsman.SOFTWARE_INSTALLATION_URI, action='x/InstallFromURI',
            selectors={'Name': 'DCIM:SoftwareUpdate'}, body=body)
        root = ElementTree.fromstring(envelope)
        self.assertEqual('x/InstallFromURI', wsman.find_text(root, 'Action'))
        self.assertEqual(wsman.SOFTWARE_INSTALLATION_URI,
                         wsman.find_text(root, 'ResourceURI'))
        self.assertEqual('DCIM:SoftwareUpdate',
                         wsman.find_selector(root, 'Name'))
        self.assertTrue(
            wsman.find_text(root, 'MessageID').startswith('uuid:'))
        targets = [e.text for e in root.iter() if e.tag.endswith('}Target')]
        self.assertEqual(['a', 'b'], targets)

    def test_identify_envelope_has_no_action(self):
        root = ElementTree.fromstring(wsman.build_envelope('uri'))
        self.assertIsNone(wsman.find_text(root, 'Action'))
        self.assertIsNone(wsman.find_selector(root, 'Name'))


@mock.patch.object(requests, 'post', autospec=True)
class WSManConnectionTestCase(base.TestCase):

    def setUp(self):
        super(WSManConnectionTestCase, self).setUp()
        self.connection = wsman.WSManConnection('10.0.0.1', CREDS, 'test')

    def test_identify(self, post_mock):
        post_mock.return_value = _response(IDENTIFY_RESPONSE)
        self.assertEqual({'vendor': 'Dell Inc.', 'version': 'iDRAC9'},
                         self.connection.identify())
        post_mock.assert_called_once_with(
            'https://10.0.0.1:443/wsman', data=mock.ANY,
            auth=('root', 'calvin'),
            headers={'Content-Type': 'application/soap+xml;charset=UTF-8'},
            verify=False, timeout=60)

    def test_custom_port(self, post_mock):
        post_mock.return_value = _response(IDENTIFY_RESPONSE)
        creds = protocol_objects.Credentials(username='root', password='x',
                                             port=8443)
        wsman.WSManConnection('10.0.0.1', creds).identify()
        self.assertEqual('https://10.0.0.1:8443/wsman',
                         post_mock.call_args[0][0])

    def test_auth_failure(self, post_mock):
        post_mock.return_value = _response(b'', status_code=401)
        self.assertRaises(exception.ProtocolAuthenticationFailure,
                          self.connection.identify)

    def test_server_error(self, post_mock):
        post_mock.return_value = _response(b'oops', status_code=500)
        exc = self.assertRaises(exception.ProtocolError,
                                self.connection.identify)
        self.assertEqual(exception.TRANSIENT, exc.classification)
        self.assertEqual(500, exc.details['status_code'])

    def test_bad_request(self, post_mock):
        post_mock.return_value = _response(b'bad', status_code=400)
        exc = self.assertRaises(exception.ProtocolError,
                                self.connection.identify)
        self.assertEqual(exception.PERMANENT, exc.classification)

    def test_timeout(self, post_mock):
        post_mock.side_effect = requests.exceptions.ReadTimeout()
        self.assertRaises(exception.ProtocolTimeout,
                          self.connection.identify)

    def test_connection_error(self, post_mock):
        post_mock.side_effect = requests.exceptions.ConnectionError('down')
        exc = self.assertRaises(exception.ProtocolConnectionError,
                                self.connection.identify)
        self.assertEqual(exception.TRANSIENT, exc.classification)

    def test_malformed_response(self, post_mock):
        post_mock.return_value = _response(b'<not xml')
        exc = self.assertRaises(exception.ProtocolError,
                                self.connection.identify)
        self.assertEqual(exception.PERMANENT, exc.classification)

    def test_invoke(self, post_mock):
        post_mock.return_value = _invoke()
        self.assertEqual('JID_001', self.connection.invoke(
            wsman.SOFTWARE_INSTALLATION_URI, 'InstallFromURI', {}, {}))

    def test_invoke_rejected(self, post_mock):
        post_mock.return_value = _invoke(value='2',
                                         message='Invalid image')
        exc = self.assertRaises(exception.ProtocolRequestRejected,
                                self.connection.invoke,
                                wsman.SOFTWARE_INSTALLATION_URI,
                                'InstallFromURI', {}, {})
        self.assertIn('Invalid image', str(exc))
        self.assertEqual({'message_id': 'SUP029'}, exc.details)
        self.assertEqual(exception.PERMANENT, exc.classification)


@mock.patch.object(requests, 'post', autospec=True)
class WSManProtocolClientTestCase(base.TestCase):

    def setUp(self):
        super(WSManProtocolClientTestCase, self).setUp()
        self.client = wsman.WSManProtocolClient()

    def test_detect_capability(self, post_mock):
        post_mock.return_value = _response(IDENTIFY_RESPONSE)
        capability = self.client.detect_capability(IDENTITY, CREDS)
        self.assertTrue(capability.supported)
        self.assertEqual(generations.GEN_14, capability.generation)
        self.assertEqual('Dell Inc.', capability.manager_type)
        self.assertEqual(self.client.update_modes, capability.update_modes)

    def test_detect_capability_unreachable(self, post_mock):
        post_mock.side_effect = requests.exceptions.ConnectionError('down')
        capability = self.client.detect_capability(IDENTITY, CREDS)
        self.assertFalse(capability.supported)

    def test_perform_simple_update(self, post_mock):
        post_mock.return_value = _invoke()
        request = _request(additional_params={'targets': ['DCIM:INSTALLED']})
        result = self.client.perform_firmware_update(request)
        self.assertEqual(protocols.QUEUED, result.status)
        self.assertEqual('JID_001', result.job_id)
        root = ElementTree.fromstring(post_mock.call_args[1]['data'])
        self.assertEqual('http://repo/BIOS.exe', wsman.find_text(root, 'URI'))
        self.assertEqual('DCIM:INSTALLED', wsman.find_text(root, 'Target'))
        self.assertTrue(wsman.find_text(root, 'Action').endswith(
            '/InstallFromURI'))

    def test_perform_repository_update(self, post_mock):
        post_mock.return_value = _invoke()
        request = _request(protocols.INSTALL_FROM_REPOSITORY, components=[],
                           repository_url='https://mirror/catalog',
                           apply_time=protocols.APPLY_ON_RESET)
        self.client.perform_firmware_update(request)
        root = ElementTree.fromstring(post_mock.call_args[1]['data'])
        self.assertEqual('https://mirror/catalog',
                         wsman.find_text(root, 'IPAddress'))
        self.assertEqual('False', wsman.find_text(root, 'RebootNeeded'))

    def test_perform_requires_image_uri(self, post_mock):
        request = _request(components=[
            firmware_objects.FirmwareComponent(id='BIOS')])
        self.assertRaises(exception.MissingParameterValue,
                          self.client.perform_firmware_update, request)
        self.assertFalse(post_mock.called)

    def test_perform_unsupported_mode(self, post_mock):
        request = _request(protocols.MULTIPART_UPDATE)
        self.assertRaises(exception.UnsupportedUpdateMode,
                          self.client.perform_firmware_update, request)
        self.assertFalse(post_mock.called)

    def test_wait_for_completion(self, post_mock):
        post_mock.side_effect = [_job('Running', 'Downloading'),
                                 _job('Completed', 'Job completed')]
        result = firmware_objects.FirmwareUpdateResult(
            protocol=protocols.WSMAN, status=protocols.QUEUED,
            job_id='JID_001')
        result = self.client.wait_for_completion(_request(), result)
        self.assertEqual(protocols.COMPLETED, result.status)
        self.assertEqual(['Job completed'], result.messages)
        self.assertEqual('Completed', result.metadata['task_state'])
        self.assertEqual(2, post_mock.call_count)

    def test_wait_for_completion_failed(self, post_mock):
        post_mock.return_value = _job('Failed', 'Image mismatch')
        result = firmware_objects.FirmwareUpdateResult(
            protocol=protocols.WSMAN, status=protocols.QUEUED,
            job_id='JID_001')
        result = self.client.wait_for_completion(_request(), result)
        self.assertEqual(protocols.FAILED, result.status)

    def test_wait_for_completion_poll_timeout(self, post_mock):
        self.config(job_poll_attempts=2, group='wsman')
        post_mock.return_value = _job('Running')
        result = firmware_objects.FirmwareUpdateResult(
            protocol=protocols.WSMAN, status=protocols.QUEUED,
            job_id='JID_001')
        self.assertRaises(exception.TaskPollTimeout,
                          self.client.wait_for_completion, _request(),
                          result)

    def test_wait_without_job(self, post_mock):
        result = firmware_objects.FirmwareUpdateResult(
            protocol=protocols.WSMAN, status=protocols.COMPLETED)
        self.assertIs(result,
                      self.client.wait_for_completion(_request(), result))
        self.assertFalse(post_mock.called)

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

from firmgate.common import exception
from firmgate.common import health_states
from firmgate.common import protocols
from firmgate.drivers import base as driver_base
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects
from firmgate.tests import base

IDENTITY = protocol_objects.ServerIdentity(host='10.0.0.1')
CREDS = protocol_objects.Credentials(username='root', password='calvin')


class FakeClient(driver_base.ProtocolClient):

    protocol = protocols.WSMAN
    priority = 20
    update_modes = frozenset([protocols.SIMPLE_UPDATE])

    def __init__(self):
        self.detect_mock = mock.Mock()
        self.probe_mock = mock.Mock(return_value=None)

    def _detect(self, identity, credentials):
        return self.detect_mock(identity, credentials)

    def _probe(self, identity, credentials):
        return self.probe_mock(identity, credentials)

    def perform_firmware_update(self, request):
        self.check_mode(request)
        return firmware_objects.FirmwareUpdateResult(
            protocol=self.protocol, status=protocols.COMPLETED)


class ProtocolClientTestCase(base.TestCase):

    def setUp(self):
        super(ProtocolClientTestCase, self).setUp()
        self.client = FakeClient()

    def test_detect_capability(self):
        self.client.detect_mock.return_value = (
            protocol_objects.ProtocolCapability(
                protocol=protocols.WSMAN, supported=True,
                update_modes=frozenset([protocols.SIMPLE_UPDATE,
                                        protocols.MULTIPART_UPDATE])))
        capability = self.client.detect_capability(IDENTITY, CREDS)
        self.assertTrue(capability.supported)
        # Only modes the client can run are advertised
        self.assertEqual(frozenset([protocols.SIMPLE_UPDATE]),
                         capability.update_modes)
        self.client.detect_mock.assert_called_once_with(IDENTITY, CREDS)

    def test_detect_capability_never_raises(self):
        self.client.detect_mock.side_effect = (
            exception.ProtocolAuthenticationFailure(
                protocol=protocols.WSMAN, host='10.0.0.1', error='denied'))
        capability = self.client.detect_capability(IDENTITY, CREDS)
        self.assertFalse(capability.supported)
        self.assertEqual(protocols.WSMAN, capability.protocol)
        self.assertEqual(exception.AUTHENTICATION,
                         capability.raw['classification'])
        self.assertIn('denied', capability.raw['error'])

    def test_detect_capability_unexpected_error(self):
        self.client.detect_mock.side_effect = KeyError('Members')
        capability = self.client.detect_capability(IDENTITY, CREDS)
        self.assertFalse(capability.supported)
        self.assertEqual(exception.PERMANENT,
                         capability.raw['classification'])

    def test_health_check(self):
        health = self.client.health_check(IDENTITY, CREDS)
        self.assertEqual(health_states.ProtocolStatus.HEALTHY, health.status)
        self.assertIsNone(health.error_classification)
        self.assertGreaterEqual(health.latency_ms, 0)

    def test_health_check_degraded(self):
        self.client.probe_mock.return_value = (
            health_states.ProtocolStatus.DEGRADED)
        health = self.client.health_check(IDENTITY, CREDS)
        self.assertEqual(health_states.ProtocolStatus.DEGRADED,
                         health.status)

    def test_health_check_never_raises(self):
        self.client.probe_mock.side_effect = exception.ProtocolTimeout(
            protocol=protocols.WSMAN, host='10.0.0.1', operation='health',
            timeout=5)
        health = self.client.health_check(IDENTITY, CREDS)
        self.assertEqual(health_states.ProtocolStatus.UNREACHABLE,
                         health.status)
        self.assertEqual(exception.TRANSIENT, health.error_classification)
        self.assertIn('5 seconds', health.details['error'])

    def test_check_mode(self):
        request = firmware_objects.FirmwareUpdateRequest(
            host='10.0.0.1', credentials=CREDS,
            mode=protocols.MULTIPART_UPDATE)
        exc = self.assertRaises(exception.UnsupportedUpdateMode,
                                self.client.perform_firmware_update, request)
        self.assertEqual(exception.PERMANENT, exc.classification)

    def test_wait_for_completion_default(self):
        result = firmware_objects.FirmwareUpdateResult(
            protocol=protocols.WSMAN, status=protocols.COMPLETED)
        self.assertIs(result,
                      self.client.wait_for_completion(mock.sentinel.request,
                                                      result))

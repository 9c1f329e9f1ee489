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

from oslo_concurrency import processutils
import paramiko

from firmgate.common import exception
from firmgate.common import protocols
from firmgate.drivers.modules import ssh
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects
from firmgate.tests import base

IDENTITY = protocol_objects.ServerIdentity(host='10.0.0.1')
CREDS = protocol_objects.Credentials(username='root', password='secret')


def _request(image_uri='https://repo/Network_Firmware_X.BIN?sig=1'):
    return firmware_objects.FirmwareUpdateRequest(
        host='10.0.0.1', credentials=CREDS, mode=protocols.OS_DRIVER_UPDATE,
        components=[firmware_objects.FirmwareComponent(
            id='NIC', image_uri=image_uri)])


def _exec_result(exit_status, stdout=b'', stderr=b''):
    out = mock.Mock()
    out.channel.recv_exit_status.return_value = exit_status
    out.read.return_value = stdout
    err = mock.Mock()
    err.read.return_value = stderr
    return mock.Mock(), out, err


@mock.patch.object(paramiko, 'SSHClient', autospec=True)
class SSHConnectTestCase(base.TestCase):

    def test_ssh_connect(self, client_mock):
        ssh_mock = client_mock.return_value
        self.assertIs(ssh_mock, ssh.ssh_connect('10.0.0.1', CREDS))
        ssh_mock.connect.assert_called_once_with(
            '10.0.0.1', username='root', password='secret', port=22,
            pkey=None, timeout=10, allow_agent=False, look_for_keys=False)
        ssh_mock.get_transport.return_value.set_keepalive.\
            assert_called_once_with(20)

    def test_ssh_connect_auth_failure(self, client_mock):
        ssh_mock = client_mock.return_value
        ssh_mock.connect.side_effect = paramiko.AuthenticationException()
        self.assertRaises(exception.ProtocolAuthenticationFailure,
                          ssh.ssh_connect, '10.0.0.1', CREDS)
        ssh_mock.close.assert_called_once_with()

    def test_ssh_connect_failure(self, client_mock):
        ssh_mock = client_mock.return_value
        ssh_mock.connect.side_effect = OSError('no route to host')
        exc = self.assertRaises(exception.SSHConnectFailed,
                                ssh.ssh_connect, '10.0.0.1', CREDS)
        self.assertEqual(exception.TRANSIENT, exc.classification)
        ssh_mock.close.assert_called_once_with()

    def test_ssh_connect_invalid_key(self, client_mock):
        creds = protocol_objects.Credentials(username='root',
                                             private_key='not a key')
        self.assertRaises(exception.InvalidParameterValue,
                          ssh.ssh_connect, '10.0.0.1', creds)
        self.assertFalse(client_mock.called)


@mock.patch.object(ssh, 'ssh_connect', autospec=True)
class SSHProtocolClientTestCase(base.TestCase):

    def setUp(self):
        super(SSHProtocolClientTestCase, self).setUp()
        self.client = ssh.SSHProtocolClient()

    @mock.patch.object(processutils, 'ssh_execute', autospec=True)
    def test_detect_capability(self, execute_mock, connect_mock):
        execute_mock.return_value = ('Linux esx01 5.15.0 x86_64\n', '')
        capability = self.client.detect_capability(IDENTITY, CREDS)
        self.assertTrue(capability.supported)
        self.assertEqual('os', capability.manager_type)
        self.assertEqual({'uname': 'Linux esx01 5.15.0 x86_64'},
                         capability.raw)
        execute_mock.assert_called_once_with(connect_mock.return_value,
                                             'uname -a')
        connect_mock.return_value.close.assert_called_once_with()

    @mock.patch.object(processutils, 'ssh_execute', autospec=True)
    def test_health_check_command_failure(self, execute_mock, connect_mock):
        execute_mock.side_effect = processutils.ProcessExecutionError(
            exit_code=127)
        health = self.client.health_check(IDENTITY, CREDS)
        self.assertEqual(exception.TRANSIENT, health.error_classification)
        connect_mock.return_value.close.assert_called_once_with()

    def test_package_command(self, connect_mock):
        self.config(staging_dir='/var/tmp', group='ssh')
        self.assertEqual(
            "curl -fsSL -o /var/tmp/Network_Firmware_X.BIN "
            "'https://repo/Network_Firmware_X.BIN?sig=1' && "
            "chmod +x /var/tmp/Network_Firmware_X.BIN && "
            "/var/tmp/Network_Firmware_X.BIN -q",
            self.client._package_command(
                'https://repo/Network_Firmware_X.BIN?sig=1'))

    def test_perform_firmware_update(self, connect_mock):
        ssh_mock = connect_mock.return_value
        ssh_mock.exec_command.return_value = _exec_result(
            0, stdout=b'Update successful.\n')
        result = self.client.perform_firmware_update(_request())
        self.assertEqual(protocols.COMPLETED, result.status)
        self.assertFalse(result.reboot_required)
        self.assertEqual(['Update successful.'], result.messages)
        ssh_mock.exec_command.assert_called_once_with(mock.ANY,
                                                      timeout=1800)
        ssh_mock.close.assert_called_once_with()

    def test_perform_firmware_update_reboot_required(self, connect_mock):
        for code in (ssh.DUP_REBOOT_REQUIRED, ssh.DUP_REBOOTING):
            connect_mock.return_value.exec_command.return_value = (
                _exec_result(code))
            result = self.client.perform_firmware_update(_request())
            self.assertEqual(protocols.COMPLETED, result.status)
            self.assertTrue(result.reboot_required)

    def test_perform_firmware_update_rejected(self, connect_mock):
        connect_mock.return_value.exec_command.return_value = _exec_result(
            1, stderr=b'Package not applicable\n')
        exc = self.assertRaises(exception.ProtocolRequestRejected,
                                self.client.perform_firmware_update,
                                _request())
        self.assertEqual({'exit_code': 1}, exc.details)
        self.assertIn('Package not applicable', str(exc))

    def test_perform_firmware_update_timeout(self, connect_mock):
        ssh_mock = connect_mock.return_value
        ssh_mock.exec_command.side_effect = TimeoutError()
        exc = self.assertRaises(exception.ProtocolTimeout,
                                self.client.perform_firmware_update,
                                _request())
        self.assertEqual(exception.TRANSIENT, exc.classification)
        ssh_mock.close.assert_called_once_with()

    def test_perform_firmware_update_requires_uri(self, connect_mock):
        self.assertRaises(exception.MissingParameterValue,
                          self.client.perform_firmware_update,
                          _request(image_uri=None))
        self.assertFalse(connect_mock.called)

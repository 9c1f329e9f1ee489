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

import threading
from unittest import mock

from oslo_serialization import jsonutils
import requests

from firmgate.common import exception
from firmgate.common import vcenter
from firmgate.tests import base


def _response(body=None, status=200):
    response = requests.Response()
    response.status_code = status
    response.url = 'https://vc.example.com'
    response._content = (jsonutils.dump_as_bytes(body)
                         if body is not None else b'')
    return response


@mock.patch.object(requests, 'Session', autospec=True)
class VCenterMaintenanceOrchestratorTestCase(base.TestCase):

    def setUp(self):
        super(VCenterMaintenanceOrchestratorTestCase, self).setUp()
        self.config(url='https://vc.example.com/', username='admin',
                    password='pw', group='vcenter')

    def _orchestrator(self, session_mock, *responses):
        session = session_mock.return_value
        session.headers = {}
        session.request.side_effect = list(responses)
        return vcenter.VCenterMaintenanceOrchestrator(), session

    def test_url_required(self, session_mock):
        self.config(url=None, group='vcenter')
        self.assertRaises(exception.MissingParameterValue,
                          vcenter.VCenterMaintenanceOrchestrator)

    def test_enter(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response({'value': {'connection_state': 'CONNECTED'}}),
            _response({'value': 'task-1'}))
        self.assertEqual('task-1', orch.enter_maintenance_mode(
            'host-42', evacuate_vms=True, timeout_minutes=2))
        self.assertEqual('token', session.headers['vmware-api-session-id'])
        session.request.assert_has_calls([
            mock.call('POST',
                      'https://vc.example.com/rest/com/vmware/cis/session',
                      auth=('admin', 'pw'), timeout=60),
            mock.call('GET', 'https://vc.example.com/rest/vcenter/host/'
                      'host-42', timeout=60),
            mock.call('POST', 'https://vc.example.com/rest/vcenter/host/'
                      'maintenance-mode/host-42', params={'action': 'enter'},
                      json={'evacuate_all': True, 'timeout': 300},
                      timeout=60)])

    def test_enter_already_in_maintenance(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response({'value': {'connection_state': 'MAINTENANCE'}}))
        self.assertIsNone(orch.enter_maintenance_mode('host-42'))
        self.assertEqual(2, session.request.call_count)

    def test_enter_resolves_name(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response({'value': [{'host': 'host-7', 'name': 'esx7'}]}),
            _response({'value': {'connection_state': 'CONNECTED'}}),
            _response({'value': [{'host': 'host-7', 'name': 'esx7'}]}),
            _response({'value': 'task-2'}))
        self.assertEqual('task-2',
                         orch.enter_maintenance_mode('esx7',
                                                     timeout_minutes=60))
        self.assertEqual(
            mock.call('POST', 'https://vc.example.com/rest/vcenter/host/'
                      'maintenance-mode/host-7', params={'action': 'enter'},
                      json={'evacuate_all': True, 'timeout': 3600},
                      timeout=60),
            session.request.call_args)

    def test_unknown_host(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response({'value': []}))
        exc = self.assertRaises(exception.MaintenanceModeError,
                                orch.enter_maintenance_mode, 'esx9')
        self.assertEqual(exception.PERMANENT, exc.classification)

    def test_exit_not_in_maintenance(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response({'value': {'connection_state': 'CONNECTED'}}))
        self.assertIsNone(orch.exit_maintenance_mode('host-42'))

    def test_exit(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response({'value': {'connection_state': 'MAINTENANCE'}}),
            _response({'value': 'task-3'}))
        self.assertEqual('task-3', orch.exit_maintenance_mode('host-42'))
        self.assertEqual(
            mock.call('POST', 'https://vc.example.com/rest/vcenter/host/'
                      'maintenance-mode/host-42', params={'action': 'exit'},
                      timeout=60),
            session.request.call_args)

    def test_http_error_classified(self, session_mock):
        orch, session = self._orchestrator(
            session_mock, _response({'error': 'denied'}, status=401))
        exc = self.assertRaises(exception.MaintenanceModeError,
                                orch.enter_maintenance_mode, 'host-42')
        self.assertEqual(exception.AUTHENTICATION, exc.classification)

    def test_connection_error_classified(self, session_mock):
        orch, session = self._orchestrator(
            session_mock, requests.ConnectionError('refused'))
        exc = self.assertRaises(exception.MaintenanceModeError, orch.login)
        self.assertEqual(exception.TRANSIENT, exc.classification)

    def test_wait_for_task(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response({'value': {'status': 'RUNNING'}}),
            _response({'value': {'status': 'SUCCEEDED'}}))
        orch.wait_for_task('task-1', 'host-42')
        self.assertEqual(3, session.request.call_count)

    def test_wait_for_task_failed(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response({'value': {'status': 'FAILED',
                                 'error': {'message': 'vMotion failed'}}}))
        exc = self.assertRaises(exception.MaintenanceModeError,
                                orch.wait_for_task, 'task-1', 'host-42')
        self.assertIn('vMotion failed', str(exc))

    def test_wait_for_task_none(self, session_mock):
        orch, session = self._orchestrator(session_mock)
        orch.wait_for_task(None, 'host-42')
        self.assertFalse(session.request.called)

    def test_wait_for_task_cancelled(self, session_mock):
        orch, session = self._orchestrator(session_mock)
        event = threading.Event()
        event.set()
        self.assertRaises(exception.OperationCancelled, orch.wait_for_task,
                          'task-1', 'host-42', cancel_event=event)

    def test_logout(self, session_mock):
        orch, session = self._orchestrator(
            session_mock,
            _response({'value': 'token'}),
            _response())
        orch.login()
        orch.logout()
        self.assertNotIn('vmware-api-session-id', session.headers)
        self.assertEqual(
            mock.call('DELETE',
                      'https://vc.example.com/rest/com/vmware/cis/session',
                      timeout=60),
            session.request.call_args)


class NoopMaintenanceOrchestratorTestCase(base.TestCase):

    def test_noop(self):
        orch = vcenter.NoopMaintenanceOrchestrator()
        self.assertIsNone(orch.enter_maintenance_mode('h1'))
        self.assertIsNone(orch.exit_maintenance_mode('h1'))
        orch.wait_for_task(None, 'h1')

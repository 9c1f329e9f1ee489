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

import os
import threading
from unittest import mock

from oslo_concurrency import processutils

from firmgate.common import exception
from firmgate.common import utils
from firmgate.tests import base


class ExecuteTestCase(base.TestCase):
    # Allow calls to utils.execute() and related functions
    block_execute = False

    @mock.patch.object(processutils, 'execute', autospec=True)
    @mock.patch.object(os.environ, 'copy', return_value={}, autospec=True)
    def test_execute_use_standard_locale_no_env_variables(self, env_mock,
                                                          execute_mock):
        utils.execute('foo', use_standard_locale=True)
        execute_mock.assert_called_once_with('foo',
                                             env_variables={'LC_ALL': 'C'})

    @mock.patch.object(processutils, 'execute', autospec=True)
    def test_execute_use_standard_locale_with_env_variables(self,
                                                            execute_mock):
        utils.execute('foo', use_standard_locale=True,
                      env_variables={'foo': 'bar'})
        execute_mock.assert_called_once_with('foo',
                                             env_variables={'LC_ALL': 'C',
                                                            'foo': 'bar'})

    @mock.patch.object(processutils, 'execute', autospec=True)
    def test_execute_not_use_standard_locale(self, execute_mock):
        utils.execute('foo', use_standard_locale=False,
                      env_variables={'foo': 'bar'})
        execute_mock.assert_called_once_with('foo',
                                             env_variables={'foo': 'bar'})

    @mock.patch.object(processutils, 'execute', autospec=True)
    def test_execute_error_reraised(self, execute_mock):
        execute_mock.side_effect = processutils.ProcessExecutionError(
            stdout='out', stderr='err', exit_code=1)
        self.assertRaises(processutils.ProcessExecutionError,
                          utils.execute, 'foo')


class PollUntilTestCase(base.TestCase):

    def test_done_first_time(self):
        fetch = mock.Mock(return_value='Completed')
        self.assertEqual('Completed',
                         utils.poll_until(fetch, lambda s: s == 'Completed',
                                          attempts=3, interval=0))
        self.assertEqual(1, fetch.call_count)

    def test_done_after_polls(self):
        fetch = mock.Mock(side_effect=['Running', 'Running', 'Completed'])
        self.assertEqual('Completed',
                         utils.poll_until(fetch, lambda s: s == 'Completed',
                                          attempts=5, interval=0))
        self.assertEqual(3, fetch.call_count)

    def test_attempts_exhausted(self):
        fetch = mock.Mock(return_value='Running')
        exc = self.assertRaises(exception.TaskPollTimeout,
                                utils.poll_until, fetch,
                                lambda s: s == 'Completed', attempts=4,
                                interval=0, task='JID_1', host='h1')
        self.assertEqual(4, fetch.call_count)
        self.assertIn('JID_1', str(exc))
        self.assertEqual(exception.TRANSIENT, exc.classification)

    def test_error_not_retried(self):
        fetch = mock.Mock(side_effect=base.TestingException)
        self.assertRaises(base.TestingException, utils.poll_until, fetch,
                          lambda s: True, attempts=4, interval=0)
        self.assertEqual(1, fetch.call_count)

    def test_error_retried(self):
        fetch = mock.Mock(side_effect=[base.TestingException, 'Completed'])
        self.assertEqual(
            'Completed',
            utils.poll_until(fetch, lambda s: s == 'Completed', attempts=4,
                             interval=0,
                             retry_on=lambda e: isinstance(
                                 e, base.TestingException)))
        self.assertEqual(2, fetch.call_count)

    def test_last_attempt_error_reports_timeout(self):
        error = exception.ProtocolConnectionError(
            protocol='redfish', host='h1', error='connection reset')
        fetch = mock.Mock(side_effect=['Running', 'Running', error])
        exc = self.assertRaises(exception.TaskPollTimeout,
                                utils.poll_until, fetch,
                                lambda s: s == 'Completed', attempts=3,
                                interval=0, task='JID_1', host='h1',
                                retry_on=exception.is_retryable)
        self.assertEqual(3, fetch.call_count)
        self.assertEqual(3, exc.kwargs['attempts'])

    def test_cancelled_before_start(self):
        event = threading.Event()
        event.set()
        fetch = mock.Mock()
        self.assertRaises(exception.OperationCancelled, utils.poll_until,
                          fetch, lambda s: True, attempts=4, interval=0,
                          cancel_event=event)
        self.assertFalse(fetch.called)

    def test_cancelled_while_polling(self):
        event = threading.Event()

        def _fetch():
            event.set()
            return 'Running'

        self.assertRaises(exception.OperationCancelled, utils.poll_until,
                          _fetch, lambda s: s == 'Completed', attempts=10,
                          interval=0, cancel_event=event)

    def test_check_cancelled(self):
        utils.check_cancelled(None, 'op', 'h')
        event = threading.Event()
        utils.check_cancelled(event, 'op', 'h')
        event.set()
        self.assertRaises(exception.OperationCancelled,
                          utils.check_cancelled, event, 'op', 'h')

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
Cluster maintenance mode orchestration.

Hosts that run a hypervisor are drained by the cluster manager before their
firmware is touched. Both transitions are asynchronous; the orchestrator
returns a task reference which is then polled to completion.
"""

import abc

from oslo_log import log
import requests

from firmgate.common import exception
from firmgate.common.i18n import _
from firmgate.common import utils
from firmgate.conf import CONF

LOG = log.getLogger(__name__)

SESSION_PATH = '/rest/com/vmware/cis/session'
HOST_PATH = '/rest/vcenter/host'
MAINTENANCE_PATH = '/rest/vcenter/host/maintenance-mode/%s'
TASK_PATH = '/rest/com/vmware/cis/task/%s'

SESSION_HEADER = 'vmware-api-session-id'

CONNECTION_MAINTENANCE = 'MAINTENANCE'

TASK_SUCCEEDED = 'SUCCEEDED'
TASK_FAILED = 'FAILED'

ENTER = 'enter'
EXIT = 'exit'

# vCenter refuses maintenance timeouts shorter than five minutes.
_MIN_TIMEOUT_SECONDS = 300


class MaintenanceOrchestrator(object, metaclass=abc.ABCMeta):
    """Moves hosts in and out of cluster maintenance mode."""

    @abc.abstractmethod
    def enter_maintenance_mode(self, host_ref, evacuate_vms=True,
                               timeout_minutes=60):
        """Start draining a host.

        :returns: a task reference, or None when the host already is in
            maintenance mode.
        """

    @abc.abstractmethod
    def exit_maintenance_mode(self, host_ref):
        """Return a host to service.

        :returns: a task reference, or None when the host is not in
            maintenance mode.
        """

    @abc.abstractmethod
    def wait_for_task(self, task_ref, host_ref, cancel_event=None):
        """Block until a task returned by enter or exit completes."""


class NoopMaintenanceOrchestrator(MaintenanceOrchestrator):
    """Used for bare metal hosts which are not part of a cluster."""

    def enter_maintenance_mode(self, host_ref, evacuate_vms=True,
                               timeout_minutes=60):
        LOG.debug('Host %s is not managed by a cluster, skipping '
                  'maintenance mode entry', host_ref)

    def exit_maintenance_mode(self, host_ref):
        LOG.debug('Host %s is not managed by a cluster, skipping '
                  'maintenance mode exit', host_ref)

    def wait_for_task(self, task_ref, host_ref, cancel_event=None):
        pass


class VCenterMaintenanceOrchestrator(MaintenanceOrchestrator):
    """Maintenance mode through the vSphere Automation REST API."""

    def __init__(self, url=None, username=None, password=None,
                 verify=None):
        self.url = (url or CONF.vcenter.url or '').rstrip('/')
        if not self.url:
            raise exception.MissingParameterValue(
                _('The vCenter URL is not configured'))
        self.username = username or CONF.vcenter.username
        self.password = password or CONF.vcenter.password
        self.verify = CONF.vcenter.verify_ca if verify is None else verify
        self._session = requests.Session()
        self._session.verify = self.verify
        self._token = None

    def _request(self, method, path, host_ref, action, **kwargs):
        kwargs.setdefault('timeout', CONF.vcenter.request_timeout)
        try:
            response = self._session.request(method, self.url + path,
                                             **kwargs)
            response.raise_for_status()
        except requests.HTTPError as e:
            raise exception.MaintenanceModeError(
                action=action, host=host_ref,
                error='%s %s' % (e.response.status_code, e.response.text),
                classification=exception.classify_status(
                    e.response.status_code)) from e
        except requests.RequestException as e:
            raise exception.MaintenanceModeError(
                action=action, host=host_ref, error=e,
                classification=exception.classify_error(e)) from e
        return response.json() if response.content else {}

    def login(self):
        body = self._request('POST', SESSION_PATH, self.url, 'log in to',
                             auth=(self.username, self.password))
        self._token = body['value']
        self._session.headers[SESSION_HEADER] = self._token
        LOG.debug('Opened vCenter session on %s', self.url)

    def logout(self):
        if self._token is None:
            return
        try:
            self._request('DELETE', SESSION_PATH, self.url, 'log out of')
        except exception.MaintenanceModeError as e:
            LOG.warning('Failed to close vCenter session on %(url)s: '
                        '%(error)s', {'url': self.url, 'error': e})
        finally:
            self._token = None
            self._session.headers.pop(SESSION_HEADER, None)

    def _call(self, method, path, host_ref, action, **kwargs):
        if self._token is None:
            self.login()
        return self._request(method, path, host_ref, action, **kwargs)

    def resolve_host(self, host_ref):
        """Translate a host name into its managed object id."""
        if host_ref.startswith('host-'):
            return host_ref
        body = self._call('GET', HOST_PATH, host_ref, 'look up',
                          params={'filter.names': host_ref})
        hosts = body.get('value') or []
        if not hosts:
            raise exception.MaintenanceModeError(
                action='look up', host=host_ref,
                error=_('host is not known to vCenter'),
                classification=exception.PERMANENT)
        return hosts[0]['host']

    def in_maintenance(self, host_ref):
        moid = self.resolve_host(host_ref)
        body = self._call('GET', '%s/%s' % (HOST_PATH, moid), host_ref,
                          'query')
        return (body.get('value') or {}).get(
            'connection_state') == CONNECTION_MAINTENANCE

    def enter_maintenance_mode(self, host_ref, evacuate_vms=True,
                               timeout_minutes=60):
        if self.in_maintenance(host_ref):
            LOG.info('Host %s is already in maintenance mode', host_ref)
            return None
        moid = self.resolve_host(host_ref)
        payload = {'evacuate_all': evacuate_vms,
                   'timeout': max(_MIN_TIMEOUT_SECONDS,
                                  timeout_minutes * 60)}
        body = self._call('POST', MAINTENANCE_PATH % moid, host_ref, ENTER,
                          params={'action': ENTER}, json=payload)
        task_ref = body.get('value')
        LOG.info('Maintenance mode entry for %(host)s started, task '
                 '%(task)s', {'host': host_ref, 'task': task_ref})
        return task_ref

    def exit_maintenance_mode(self, host_ref):
        if not self.in_maintenance(host_ref):
            LOG.info('Host %s is not in maintenance mode', host_ref)
            return None
        moid = self.resolve_host(host_ref)
        body = self._call('POST', MAINTENANCE_PATH % moid, host_ref, EXIT,
                          params={'action': EXIT})
        task_ref = body.get('value')
        LOG.info('Maintenance mode exit for %(host)s started, task '
                 '%(task)s', {'host': host_ref, 'task': task_ref})
        return task_ref

    def get_task(self, task_ref, host_ref):
        body = self._call('GET', TASK_PATH % task_ref, host_ref,
                          'track')
        return body.get('value') or {}

    def wait_for_task(self, task_ref, host_ref, cancel_event=None):
        if task_ref is None:
            return

        task = utils.poll_until(
            lambda: self.get_task(task_ref, host_ref),
            lambda t: t.get('status') in (TASK_SUCCEEDED, TASK_FAILED),
            attempts=CONF.vcenter.task_poll_attempts,
            interval=CONF.vcenter.task_poll_interval,
            task=task_ref, host=host_ref, cancel_event=cancel_event,
            retry_on=exception.is_retryable)
        if task['status'] == TASK_FAILED:
            error = task.get('error') or {}
            raise exception.MaintenanceModeError(
                action='complete the transition of', host=host_ref,
                error=error.get('message') or task_ref,
                classification=exception.PERMANENT)

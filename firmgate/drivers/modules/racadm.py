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
Remote RACADM protocol client.
"""

import re

from oslo_log import log as logging
from oslo_utils import timeutils

from firmgate.common import exception
from firmgate.common import generations
from firmgate.common.i18n import _
from firmgate.common import protocols
from firmgate.common import utils
from firmgate.conf import CONF
from firmgate.drivers import base
from firmgate.drivers import utils as driver_utils
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects

LOG = logging.getLogger(__name__)

_FIRMWARE_VERSION_RE = re.compile(r'^\s*Firmware Version\s*=\s*(\S+)',
                                  re.MULTILINE | re.IGNORECASE)
_MODEL_RE = re.compile(r'^\s*System Model\s*=\s*(.+)$',
                       re.MULTILINE | re.IGNORECASE)
_JOB_ID_RE = re.compile(r'\b(JID_\d+)\b')
_JOB_STATUS_RE = re.compile(r'^\s*Status\s*=\s*(.+)$',
                            re.MULTILINE | re.IGNORECASE)
_FAILURE_RE = re.compile(r'error|fail|invalid|not supported', re.IGNORECASE)

JOB_SUCCESS_STATES = frozenset(['Completed'])
JOB_FAILURE_STATES = frozenset(['Failed', 'Completed with Errors'])


def parse_sysinfo(output):
    """Extract controller firmware version and model from getsysinfo."""
    version = _FIRMWARE_VERSION_RE.search(output)
    model = _MODEL_RE.search(output)
    return {'firmware_version': version.group(1) if version else None,
            'model': model.group(1).strip() if model else None}


class RacadmProtocolClient(base.ProtocolClient):

    protocol = protocols.RACADM
    priority = protocols.PRIORITIES[protocols.RACADM]
    update_modes = frozenset([protocols.INSTALL_FROM_REPOSITORY])

    def _racadm(self, host, credentials, operation, *args, timeout=None):
        if not credentials.username or not credentials.password:
            raise exception.MissingParameterValue(
                _('racadm requires a user name and password for %s') % host)
        cmd = [CONF.racadm.binary, '-r', host, '-u', credentials.username,
               '-p', credentials.password]
        cmd.extend(args)
        return driver_utils.run_command(
            self.protocol, host, operation, cmd,
            timeout or CONF.racadm.command_timeout,
            secrets=[credentials.password])

    def _detect(self, identity, credentials):
        output = self._racadm(identity.host, credentials, 'detect',
                              'getsysinfo')
        info = parse_sysinfo(output)
        return protocol_objects.ProtocolCapability(
            protocol=self.protocol,
            supported=True,
            firmware_version=info['firmware_version'],
            manager_type='iDRAC',
            generation=generations.detect_generation(
                info['firmware_version']),
            update_modes=self.update_modes,
            raw=info)

    def _probe(self, identity, credentials):
        self._racadm(identity.host, credentials, 'health', 'getsysinfo')

    def update_timeout(self):
        return CONF.racadm.command_timeout

    def perform_firmware_update(self, request):
        """Run a catalog based update.

        The controller either schedules a job, which is then tracked with
        ``jobqueue view``, or reports the outcome directly.
        """
        self.check_mode(request)
        repository = (request.repository_url
                      or request.additional_params.get('repository'))
        if not repository:
            raise exception.MissingParameterValue(
                _('racadm repository update on %s requires a repository '
                  'URL') % request.host)

        started_at = timeutils.utcnow()
        output = self._racadm(request.host, request.credentials,
                              'firmware update', 'update', '-f',
                              'Catalog.xml', '-e', repository, '-a', 'TRUE')
        result = firmware_objects.FirmwareUpdateResult(
            protocol=self.protocol, status=protocols.QUEUED,
            started_at=started_at, messages=[output.strip()])

        job = _JOB_ID_RE.search(output)
        if job:
            result.job_id = job.group(1)
            LOG.info('racadm update on %(host)s created job %(job)s',
                     {'host': request.host, 'job': result.job_id})
            return result

        result.completed_at = timeutils.utcnow()
        if _FAILURE_RE.search(output):
            raise exception.ProtocolRequestRejected(
                protocol=self.protocol, host=request.host,
                operation='firmware update', error=output.strip())
        result.status = protocols.COMPLETED
        return result

    def wait_for_completion(self, request, result, cancel_event=None):
        if not result.job_id or result.status != protocols.QUEUED:
            return result

        def _fetch():
            output = self._racadm(request.host, request.credentials,
                                  'job poll', 'jobqueue', 'view', '-i',
                                  result.job_id)
            status = _JOB_STATUS_RE.search(output)
            return status.group(1).strip() if status else ''

        state = utils.poll_until(
            _fetch, lambda s: s in JOB_SUCCESS_STATES | JOB_FAILURE_STATES,
            attempts=CONF.racadm.job_poll_attempts,
            interval=CONF.racadm.job_poll_interval,
            task=result.job_id, host=request.host,
            cancel_event=cancel_event, retry_on=exception.is_retryable)
        result.completed_at = timeutils.utcnow()
        result.status = (protocols.COMPLETED if state in JOB_SUCCESS_STATES
                         else protocols.FAILED)
        result.metadata['task_state'] = state
        return result

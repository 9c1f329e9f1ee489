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
The firmware update workflow of a single host.

:class:`UpdateFlow` walks the phase machine defined in
:mod:`firmgate.common.states`. Failures never trigger automatic recovery:
a failed APPLY leaves the host in maintenance mode and a failed POSTCHECK
does not roll the firmware back. Both need an operator.
"""

import threading

from oslo_log import log
from oslo_utils import excutils
from oslo_utils import timeutils

from firmgate.common import exception
from firmgate.common import job_store as job_store_mod
from firmgate.common import states
from firmgate.common import utils
from firmgate.common import vcenter
from firmgate.conductor import health_gate
from firmgate.conf import CONF

LOG = log.getLogger(__name__)

RUNNING = 'running'
SUCCEEDED = 'succeeded'
FAILED = 'failed'


class UpdateFlow(object):
    """Drives one host through the update phases.

    :param request: a FirmwareUpdateRequest. Its credentials may be None
        when a credential resolver is given.
    :param manager: a ProtocolManager.
    :param credential_resolver: optional CredentialResolver supplying
        alternate credentials when the controller rejects the current ones.
    :param maintenance: a MaintenanceOrchestrator, defaults to a no-op one
        for hosts outside a cluster.
    :param job_store: a JobStore receiving progress.
    :param gate_factory: callable ``(identity, credentials)`` returning an
        object with an ``evaluate()`` method.
    :param cancel_event: threading.Event checked at every phase boundary.
    :param host_ref: name of the host in the cluster manager, defaults to
        the request host.
    """

    def __init__(self, request, manager, credential_resolver=None,
                 maintenance=None, job_store=None, gate_factory=None,
                 cancel_event=None, host_ref=None):
        self.request = request
        self.manager = manager
        self.credential_resolver = credential_resolver
        self.maintenance = (maintenance
                            or vcenter.NoopMaintenanceOrchestrator())
        self.job_store = job_store or job_store_mod.InMemoryJobStore()
        self.gate_factory = gate_factory or health_gate.HealthGateEvaluator
        self.cancel_event = cancel_event or threading.Event()
        self.host_ref = host_ref or request.host

        self.machine = states.build_machine()
        self.machine.initialize(states.PRECHECK)
        self.job_id = None
        self.precheck_result = None
        self.postcheck_result = None
        self.result = None
        self.error = None

    @property
    def host(self):
        return self.request.host

    @property
    def phase(self):
        return self.machine.current_state

    def cancel(self):
        """Ask the run to stop at the next safe point."""
        LOG.info('Cancellation requested for the update of %s', self.host)
        self.cancel_event.set()

    def _record(self, message, **values):
        values.setdefault('phase', self.phase)
        self.job_store.update(self.job_id, **values)
        self.job_store.add_event(self.job_id, self.phase, message)

    def _candidates(self):
        candidates = []
        if self.request.credentials is not None:
            candidates.append(self.request.credentials)
        if self.credential_resolver is not None:
            candidates.extend(c for c in self.credential_resolver.resolve(
                self.host) if c not in candidates)
        if not candidates:
            raise exception.CredentialsNotFound(host=self.host)
        return candidates

    def _gate(self, phase, credentials):
        gate = self.gate_factory(self.request.identity, credentials)
        result = gate.evaluate()
        if not result.passed:
            issues = ', '.join('%s (%s)' % (c.component, c.message)
                               for c in result.blocking_issues)
            LOG.error('Health gate of %(host)s failed during %(phase)s. '
                      'Recommendations: %(recs)s',
                      {'host': self.host, 'phase': phase,
                       'recs': '; '.join(result.recommendations) or 'none'})
            raise exception.HealthGateFailed(
                host=self.host, phase=phase, issues=issues,
                details={'recommendations': result.recommendations,
                         'readiness_score': result.readiness_score})
        return result

    def _with_candidates(self, action):
        """Call ``action(credentials)`` for each credential candidate.

        Only a rejection of the credentials moves on to the next
        candidate. The credentials that worked stay on the request for
        the following phases.
        """
        candidates = self._candidates()
        for index, credentials in enumerate(candidates, start=1):
            try:
                value = action(credentials)
            except Exception as e:
                if (exception.classify_error(e) != exception.AUTHENTICATION
                        or index == len(candidates)):
                    raise
                LOG.warning('Credentials for %(host)s were rejected during '
                            '%(phase)s, trying candidate %(next)d of '
                            '%(total)d', {'host': self.host,
                                          'phase': self.phase,
                                          'next': index + 1,
                                          'total': len(candidates)})
                continue
            self.request = self.request.with_credentials(credentials)
            return value

    def _precheck(self):
        self.precheck_result = self._with_candidates(
            lambda credentials: self._gate(states.PRECHECK, credentials))
        self._record('Health gate passed with readiness score %d'
                     % self.precheck_result.readiness_score,
                     readiness_score=self.precheck_result.readiness_score)

    def _enter_maintenance(self):
        task = self.maintenance.enter_maintenance_mode(
            self.host_ref, evacuate_vms=CONF.vcenter.evacuate_vms,
            timeout_minutes=CONF.vcenter.maintenance_timeout_minutes)
        self.maintenance.wait_for_task(task, self.host_ref,
                                       cancel_event=self.cancel_event)
        self._record('Host is in maintenance mode')

    def _submit_and_wait(self, credentials):
        request = self.request.with_credentials(credentials)
        submitted = self.manager.run_update(request,
                                            cancel_event=self.cancel_event)
        self._record('Update submitted through %s' % submitted.protocol,
                     protocol=submitted.protocol,
                     task=submitted.task_location or submitted.job_id)
        return self.manager.wait(request, submitted,
                                 cancel_event=self.cancel_event)

    def _apply(self):
        self.result = self._with_candidates(self._submit_and_wait)
        self._record('Update finished with status %s' % self.result.status,
                     reboot_required=self.result.reboot_required)

    def _postcheck(self):
        if not CONF.postcheck_enabled:
            self._record('Post-update health gate is disabled')
            return
        self.postcheck_result = self._with_candidates(
            lambda credentials: self._gate(states.POSTCHECK, credentials))
        self._record('Post-update health gate passed')

    def _exit_maintenance(self):
        task = self.maintenance.exit_maintenance_mode(self.host_ref)
        self.maintenance.wait_for_task(task, self.host_ref,
                                       cancel_event=self.cancel_event)
        self._record('Host returned to service')

    def _fail(self, error):
        self.error = error
        failed_phase = self.phase
        classification = exception.classify_error(error)
        LOG.error('Firmware update of %(host)s failed during %(phase)s '
                  'with a %(class)s error: %(error)s',
                  {'host': self.host, 'phase': failed_phase,
                   'class': classification, 'error': error})
        if failed_phase not in (states.FAILED, states.DONE):
            self.machine.process_event(states.FAIL)
        self._record(str(error), status=FAILED, failed_phase=failed_phase,
                     classification=classification,
                     protocol=getattr(error, 'protocol', None),
                     error_details=getattr(error, 'details', None),
                     finished_at=timeutils.utcnow())

    def _start(self):
        if self.job_id is None:
            self.job_id = self.job_store.create(
                self.host, phase=self.phase, status=RUNNING,
                mode=self.request.mode, started_at=timeutils.utcnow())
        elif self.phase == states.FAILED:
            self.machine.process_event(states.RETRY)
            self.error = None
            self._record('Retrying the update', status=RUNNING)
        else:
            raise exception.InvalidState(
                'The update of %s is already %s' % (self.host, self.phase))

    def run(self):
        """Run the workflow to DONE.

        May be called again after a failure, restarting from PRECHECK.

        :returns: the FirmwareUpdateResult of the update.
        :raises: the error that moved the workflow to FAILED.
        """
        self._start()
        steps = ((self._precheck, states.GATE_PASSED),
                 (self._enter_maintenance, states.MAINTENANCE_ENTERED),
                 (self._apply, states.APPLIED),
                 (self._postcheck, states.VERIFIED),
                 (self._exit_maintenance, states.MAINTENANCE_EXITED))
        try:
            for step, event in steps:
                utils.check_cancelled(self.cancel_event, self.phase,
                                      self.host)
                LOG.info('Update of %(host)s entering phase %(phase)s',
                         {'host': self.host, 'phase': self.phase})
                step()
                self.machine.process_event(event)
        except Exception as e:
            with excutils.save_and_reraise_exception():
                self._fail(e)

        self._record('Firmware update completed', status=SUCCEEDED,
                     finished_at=timeutils.utcnow())
        LOG.info('Firmware update of %s completed', self.host)
        return self.result

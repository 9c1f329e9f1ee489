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
Redfish protocol client.
"""

from oslo_log import log
from oslo_utils import timeutils

from firmgate.common import exception
from firmgate.common import generations
from firmgate.common import protocols
from firmgate.drivers import base
from firmgate.drivers.modules.redfish import capabilities
from firmgate.drivers.modules.redfish import firmware
from firmgate.drivers.modules.redfish import utils as redfish_utils
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects

LOG = log.getLogger(__name__)


class RedfishProtocolClient(base.ProtocolClient):

    protocol = protocols.REDFISH
    priority = protocols.PRIORITIES[protocols.REDFISH]
    update_modes = frozenset([protocols.SIMPLE_UPDATE,
                              protocols.INSTALL_FROM_REPOSITORY,
                              protocols.MULTIPART_UPDATE])

    def _session(self, host, credentials, operation):
        return redfish_utils.RedfishSession(host, credentials,
                                            operation=operation)

    def _detect(self, identity, credentials):
        with self._session(identity.host, credentials, 'detect') as session:
            update_service = session.get_json(redfish_utils.UPDATE_SERVICE)
            manager = capabilities.get_manager(session)

        modes = firmware.get_update_modes(update_service)
        version = manager.get('FirmwareVersion')
        return protocol_objects.ProtocolCapability(
            protocol=self.protocol,
            supported=bool(modes),
            firmware_version=version,
            manager_type=manager.get('ManagerType'),
            generation=generations.detect_generation(version),
            update_modes=modes,
            raw={'actions': sorted(update_service.get('Actions') or {}),
                 'model': manager.get('Model')})

    def _probe(self, identity, credentials):
        with self._session(identity.host, credentials, 'health') as session:
            session.get_json(redfish_utils.SERVICE_ROOT)

    def perform_firmware_update(self, request):
        """Submit a firmware update through the UpdateService.

        Mode specific fields are checked before anything is sent. The
        result is QUEUED with the task locator returned by the service.
        """
        firmware.validate_request(request)
        started_at = timeutils.utcnow()
        with self._session(request.host, request.credentials,
                           'firmware update') as session:
            try:
                baseline = firmware.get_software_inventory(session)
            except exception.ProtocolError as e:
                LOG.warning('Unable to snapshot the software inventory of '
                            '%(host)s before updating: %(error)s',
                            {'host': request.host, 'error': e})
                baseline = None
            task_location = firmware.submit_update(session, request)

        LOG.info('Firmware update for %(host)s queued, task %(task)s',
                 {'host': request.host, 'task': task_location})
        result = firmware_objects.FirmwareUpdateResult(
            protocol=self.protocol,
            status=protocols.QUEUED,
            task_location=task_location,
            job_id=task_location.rsplit('/', 1)[-1] if task_location
            else None,
            started_at=started_at)
        if baseline is not None:
            result.metadata['inventory_before'] = baseline
        return result

    def wait_for_completion(self, request, result, cancel_event=None):
        if not result.task_location:
            LOG.warning('No task locator was returned for the update of '
                        '%s, completion cannot be tracked', request.host)
            return result

        def _progress(state):
            result.status = protocols.IN_PROGRESS
            result.percent_complete = state['percent_complete']

        with self._session(request.host, request.credentials,
                           'task poll') as session:
            state = firmware.poll_task(session, result.task_location,
                                       cancel_event=cancel_event,
                                       on_progress=_progress)
            result.messages = state['messages']
            result.completed_at = timeutils.utcnow()
            if state['state'] in firmware.TASK_SUCCESS_STATES:
                result.status = protocols.COMPLETED
                baseline = result.metadata.get('inventory_before')
                if baseline is not None:
                    self._record_inventory_changes(session, result, baseline)
            else:
                result.status = protocols.FAILED
        result.metadata['task_state'] = state['state']
        return result

    @staticmethod
    def _record_inventory_changes(session, result, baseline):
        try:
            current = firmware.get_software_inventory(session)
        except exception.ProtocolError as e:
            LOG.warning('Unable to read the software inventory of %(host)s '
                        'after the update: %(error)s',
                        {'host': session.host, 'error': e})
            return
        result.inventory_changes = firmware.diff_inventory(baseline, current)

    def get_enhanced_capabilities(self, identity, credentials):
        """Return Dell specific controller intelligence for a server."""
        with self._session(identity.host, credentials,
                           'capability enrichment') as session:
            return capabilities.detect_enhanced_capabilities(session)

    def clear_job_queue(self, identity, credentials, force=False):
        with self._session(identity.host, credentials,
                           'job queue clear') as session:
            capabilities.clear_job_queue(session, force=force)

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

"""Redfish firmware update actions, task tracking and inventory diffs."""

from oslo_log import log
from oslo_serialization import jsonutils

from firmgate.common import exception
from firmgate.common.i18n import _
from firmgate.common import protocols
from firmgate.common import utils
from firmgate.conf import CONF
from firmgate.drivers.modules.redfish import utils as redfish_utils
from firmgate.objects import firmware as firmware_objects

LOG = log.getLogger(__name__)

SIMPLE_UPDATE_ACTION = '#UpdateService.SimpleUpdate'
INSTALL_FROM_REPOSITORY_ACTION = '#UpdateService.InstallFromRepository'
DEFAULT_MULTIPART_URI = '/redfish/v1/UpdateService/update-multipart'

TASK_SUCCESS_STATES = frozenset(['Completed', 'CompletedOK',
                                 'CompletedWithWarnings'])
TASK_FAILURE_STATES = frozenset(['Exception', 'Killed', 'Cancelled',
                                 'Failed'])
TASK_TERMINAL_STATES = TASK_SUCCESS_STATES | TASK_FAILURE_STATES


def get_update_modes(update_service):
    """Derive the supported update modes from the UpdateService resource."""
    actions = update_service.get('Actions') or {}
    modes = set()
    if SIMPLE_UPDATE_ACTION in actions:
        modes.add(protocols.SIMPLE_UPDATE)
    if INSTALL_FROM_REPOSITORY_ACTION in actions:
        modes.add(protocols.INSTALL_FROM_REPOSITORY)
    if update_service.get('MultipartHttpPushUri'):
        modes.add(protocols.MULTIPART_UPDATE)
    return frozenset(modes)


def validate_request(request):
    """Check mode specific fields before any request is sent.

    :raises: MissingParameterValue when a required field is absent.
    :raises: UnsupportedUpdateMode for modes Redfish cannot execute.
    """
    component = request.components[0] if request.components else None
    if request.mode == protocols.SIMPLE_UPDATE:
        if component is None or not component.image_uri:
            raise exception.MissingParameterValue(
                _('Image URI required for SimpleUpdate on %s')
                % request.host)
    elif request.mode == protocols.MULTIPART_UPDATE:
        if (component is None or component.stream is None
                or not component.file_name):
            raise exception.MissingParameterValue(
                _('Multipart update on %s requires a stream and a file '
                  'name') % request.host)
    elif request.mode != protocols.INSTALL_FROM_REPOSITORY:
        raise exception.UnsupportedUpdateMode(protocol=protocols.REDFISH,
                                              mode=request.mode)


def _apply_time_payload(request):
    if request.apply_time == protocols.APPLY_IMMEDIATE:
        return {}
    payload = {'@Redfish.OperationApplyTime': request.apply_time}
    if request.apply_time == protocols.APPLY_AT_MAINTENANCE_WINDOW:
        window = {'MaintenanceWindowStartTime':
                  request.maintenance_window_start.isoformat()}
        if request.maintenance_window_duration:
            window['MaintenanceWindowDurationInSeconds'] = (
                request.maintenance_window_duration)
        payload['@Redfish.MaintenanceWindow'] = window
    return payload


def _require_action(update_service, action, host):
    target = ((update_service.get('Actions') or {}).get(action)
              or {}).get('target')
    if not target:
        raise exception.ProtocolRequestRejected(
            protocol=protocols.REDFISH, host=host,
            operation='firmware update',
            error=_('action %s is not offered by the UpdateService')
            % action)
    return target


def simple_update(session, request, update_service):
    component = request.components[0]
    target = _require_action(update_service, SIMPLE_UPDATE_ACTION,
                             session.host)
    image_uri = component.image_uri
    payload = {
        'ImageURI': image_uri,
        'TransferProtocol': ('HTTPS' if image_uri.startswith('https://')
                             else 'HTTP'),
    }
    targets = request.additional_params.get('targets')
    if targets:
        payload['Targets'] = targets
    payload.update(_apply_time_payload(request))
    LOG.info('Pushing firmware image %(image)s to %(host)s using '
             'SimpleUpdate', {'image': image_uri, 'host': session.host})
    return session.post(target, payload)


def install_from_repository(session, request, update_service):
    target = _require_action(update_service, INSTALL_FROM_REPOSITORY_ACTION,
                             session.host)
    repository = request.repository_url or CONF.redfish.default_catalog_url
    payload = {
        'Repository': repository,
        'InstallUpon': request.additional_params.get(
            'install_upon', request.apply_time),
        'UpdateParameters': request.additional_params.get(
            'update_parameters', {}),
    }
    LOG.info('Installing firmware on %(host)s from repository '
             '%(repository)s', {'host': session.host,
                                'repository': repository})
    return session.post(target, payload)


def multipart_update(session, request, update_service):
    component = request.components[0]
    rewindable = component.stream.seekable()
    if rewindable:
        # A retried submission must upload the whole file again.
        component.stream.seek(0)
    push_uri = redfish_utils.relative_path(
        update_service.get('MultipartHttpPushUri') or DEFAULT_MULTIPART_URI)
    parameters = dict(request.additional_params.get('update_parameters', {}))
    parameters.update(_apply_time_payload(request))
    files = {
        'UpdateParameters': (None, jsonutils.dumps(parameters),
                             'application/json'),
        'UpdateFile': (component.file_name, component.stream,
                       'application/octet-stream'),
    }
    LOG.info('Uploading firmware file %(file)s to %(host)s',
             {'file': component.file_name, 'host': session.host})
    try:
        return session.post(push_uri, None, files=files)
    except exception.FirmgateException as e:
        if (rewindable or isinstance(e, exception.ProtocolTimeout)
                or not exception.is_retryable(e)):
            raise
        raise exception.ProtocolRequestRejected(
            protocol=protocols.REDFISH, host=session.host,
            operation='firmware update',
            error=_('the upload of %(file)s failed and its stream cannot '
                    'be rewound for another attempt: %(error)s')
            % {'file': component.file_name, 'error': e}) from e


_SUBMITTERS = {
    protocols.SIMPLE_UPDATE: simple_update,
    protocols.INSTALL_FROM_REPOSITORY: install_from_repository,
    protocols.MULTIPART_UPDATE: multipart_update,
}


def submit_update(session, request):
    """Submit a firmware update.

    :returns: the task locator from the ``Location`` header, or None.
    """
    update_service = session.get_json(redfish_utils.UPDATE_SERVICE)
    response = _SUBMITTERS[request.mode](session, request, update_service)
    return redfish_utils.relative_path(response.headers.get('Location'))


def get_task_state(session, task_location):
    """Read a task or job and normalize its state.

    :returns: a dict with ``state``, ``status``, ``percent_complete`` and
        ``messages`` keys.
    """
    task = session.get_json(task_location)
    messages = []
    for message in task.get('Messages') or []:
        if isinstance(message, dict):
            messages.append(message.get('Message')
                            or message.get('MessageId')
                            or jsonutils.dumps(message))
        else:
            messages.append(str(message))
    percent = task.get('PercentComplete')
    return {
        'state': str(task.get('TaskState') or task.get('JobState') or ''),
        'status': task.get('TaskStatus'),
        'percent_complete': percent if isinstance(percent, int) else None,
        'messages': messages,
    }


def poll_task(session, task_location, cancel_event=None, on_progress=None):
    """Poll a task until it reaches a terminal state.

    Transient failures while polling (the controller restarts during most
    firmware updates) consume an attempt instead of aborting.

    :param session: a RedfishSession.
    :param task_location: the task locator returned on submission.
    :param cancel_event: optional threading.Event stopping the poll.
    :param on_progress: optional callable receiving each task state.
    :returns: the terminal task state, see get_task_state.
    :raises: TaskPollTimeout if attempts are exhausted.
    :raises: OperationCancelled if cancel_event is set.
    """
    def _fetch():
        state = get_task_state(session, task_location)
        LOG.debug('Task %(task)s on %(host)s is %(state)s '
                  '(%(percent)s%% complete)',
                  {'task': task_location, 'host': session.host,
                   'state': state['state'],
                   'percent': state['percent_complete']})
        if on_progress is not None:
            on_progress(state)
        return state

    return utils.poll_until(
        _fetch, lambda state: state['state'] in TASK_TERMINAL_STATES,
        attempts=CONF.redfish.task_poll_attempts,
        interval=CONF.redfish.task_poll_interval,
        task=task_location, host=session.host,
        cancel_event=cancel_event, retry_on=exception.is_retryable)


def get_software_inventory(session):
    """Snapshot installed firmware keyed by component id."""
    inventory = {}
    for item in session.get_members(redfish_utils.SOFTWARE_INVENTORY):
        component_id = item.get('Id') or item.get('@odata.id')
        inventory[component_id] = {'id': component_id,
                                   'name': item.get('Name'),
                                   'version': item.get('Version')}
    return inventory


def diff_inventory(before, after):
    """Compare two inventory snapshots.

    :returns: InventoryChanges with entries sorted by component id.
    """
    changes = firmware_objects.InventoryChanges()
    for component_id in sorted(set(before) | set(after)):
        old = before.get(component_id)
        new = after.get(component_id)
        if old is None:
            changes.added.append({'id': component_id,
                                  'name': new['name'],
                                  'current_version': new['version']})
        elif new is None:
            changes.removed.append({'id': component_id,
                                    'name': old['name'],
                                    'previous_version': old['version']})
        elif old['version'] != new['version']:
            changes.updated.append({'id': component_id,
                                    'name': new['name'],
                                    'previous_version': old['version'],
                                    'current_version': new['version']})
    return changes

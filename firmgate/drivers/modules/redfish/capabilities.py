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
Dell specific capability enrichment over Redfish.

Nothing here is memoized: every call reads the controller again. Callers
that want caching put it in front of the protocol manager.
"""

from oslo_log import log

from firmgate.common import exception
from firmgate.common import generations
from firmgate.conf import CONF
from firmgate.objects import protocol as protocol_objects

LOG = log.getLogger(__name__)

MANAGERS = '/redfish/v1/Managers'
SYSTEMS = '/redfish/v1/Systems'
CHASSIS = '/redfish/v1/Chassis'
DELL_JOBS = '/redfish/v1/Managers/iDRAC.Embedded.1/Oem/Dell/Jobs'
DELETE_JOB_QUEUE = ('/redfish/v1/Managers/iDRAC.Embedded.1/Oem/Dell/Jobs/'
                    'Actions/Oem.Dell.JobService.DeleteJobQueue')

CLEAR_ALL = 'JID_CLEARALL'
CLEAR_ALL_FORCE = 'JID_CLEARALL_FORCE'

CERT_VALID = 'valid'
CERT_SELF_SIGNED = 'self_signed'

_SERVICE_MARKERS = (
    ('EventService', 'EVENTS'),
    ('SessionService', 'SESSIONS'),
    ('UpdateService', 'UPDATES'),
)


def get_manager(session):
    """Return the first manager resource, or an empty dict."""
    return session.get_first_member(MANAGERS)


def get_license_level(manager):
    oem = (manager.get('Oem') or {}).get('Dell') or {}
    features = oem.get('LicensedFeatures') or []
    return generations.infer_license_level(oem.get('License'),
                                           len(features))


def get_job_queue(session):
    """List the controller jobs.

    :returns: a list of dicts with ``id``, ``name``, ``status`` and
        ``message`` keys.
    """
    jobs = session.get_members(DELL_JOBS)
    return [{'id': job.get('Id') or job.get('@odata.id'),
             'name': job.get('Name', 'Unknown Job'),
             'status': job.get('JobState') or job.get('JobStatus'),
             'message': job.get('Message')}
            for job in jobs]


def get_job_queue_status(session):
    return generations.analyze_job_queue(
        job['status'] for job in get_job_queue(session))


def clear_job_queue(session, force=False):
    """Delete every job from the controller job queue.

    :param force: use ``JID_CLEARALL_FORCE`` which also resets stuck jobs.
    """
    job_id = CLEAR_ALL_FORCE if force else CLEAR_ALL
    LOG.info('Clearing the job queue of %(host)s with %(job)s',
             {'host': session.host, 'job': job_id})
    session.post(DELETE_JOB_QUEUE, {'JobID': job_id})


def get_supported_services(service_root):
    services = ['REDFISH']
    services.extend(name for key, name in _SERVICE_MARKERS
                    if service_root.get(key))
    if ((service_root.get('Oem') or {}).get('Dell') or {}).get('Jobs'):
        services.append('JOBS')
    return services


def get_power_state(session):
    return session.get_first_member(SYSTEMS).get('PowerState')


def get_chassis_health(session):
    chassis = session.get_first_member(CHASSIS)
    return (chassis.get('Status') or {}).get('Health')


def get_certificate_status():
    """Certificate trust as observed by this client.

    A successful exchange with verification enabled proves the certificate
    chains to a trusted CA. Without verification nothing is known beyond
    the controller default, which is a self-signed certificate.
    """
    return CERT_VALID if CONF.redfish.verify_ca else CERT_SELF_SIGNED


def _optional(func, *args):
    try:
        return func(*args)
    except exception.ProtocolError as e:
        LOG.debug('Optional Redfish lookup %(func)s failed: %(error)s',
                  {'func': func.__name__, 'error': e})
        return None


def detect_enhanced_capabilities(session):
    """Gather Dell specific controller intelligence.

    The service root and manager are required. Job queue, power state and
    chassis health are best effort; a job queue that cannot be read is
    reported as ``error``.

    :param session: a RedfishSession.
    :returns: an EnhancedCapabilities object.
    """
    service_root = session.get_json('/redfish/v1')
    manager = get_manager(session)
    firmware_version = manager.get('FirmwareVersion')
    generation = generations.detect_generation(firmware_version)
    license_level = get_license_level(manager)

    job_queue_status = _optional(get_job_queue_status, session)
    if job_queue_status is None:
        job_queue_status = generations.JOB_QUEUE_ERROR

    return protocol_objects.EnhancedCapabilities(
        generation=generation,
        license_level=license_level,
        certificate_status=get_certificate_status(),
        job_queue_status=job_queue_status,
        network_update_supported=generations.network_update_supported(
            generation, license_level),
        firmware_version=firmware_version,
        supported_services=get_supported_services(service_root),
        power_state=_optional(get_power_state, session),
        health=_optional(get_chassis_health, session))

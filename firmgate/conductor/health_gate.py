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
Hardware readiness gate run around a firmware update.

Seven category probes run concurrently against the controller. A probe
that fails or does not finish in time is turned into a single critical
check for its category; the remaining probes are unaffected. The verdict
is only built once every probe has settled.
"""

import re

import futurist
from futurist import waiters
from oslo_log import log

from firmgate.common import exception
from firmgate.common import generations
from firmgate.common import health_states
from firmgate.common.i18n import _
from firmgate.common import protocols
from firmgate.conf import CONF
from firmgate.drivers.modules.redfish import capabilities as redfish_caps
from firmgate.drivers.modules.redfish import utils as redfish_utils
from firmgate.objects import health as health_objects

LOG = log.getLogger(__name__)

Category = health_states.Category
CheckStatus = health_states.CheckStatus
OverallHealth = health_states.OverallHealth

POWER_ON = 'On'

BLOCKING_CRITICAL_PENALTY = 50
CRITICAL_PENALTY = 20
WARNING_PENALTY = 10
UNKNOWN_PENALTY = 5

REC_POWER_ON = _('Power on the system before attempting firmware updates')
REC_THERMAL = _('Check thermal conditions and cooling before proceeding')
REC_CLEAR_JOB_QUEUE = _('Clear job queue before proceeding')
REC_NETWORK_UPDATE = _('Use local update methods or upgrade iDRAC license')
REC_CERTIFICATE = _('Consider updating iDRAC certificate')
REC_IDRAC_FIRMWARE = _('Consider updating iDRAC firmware to latest version '
                       'for improved reliability')
REC_LICENSE = _('Upgrade to Enterprise license for enhanced firmware '
                'management features')


def _component_name(name):
    return re.sub(r'\s+', '_', name.strip().lower())


def _vendor_check(category, component, label, resource, details=None):
    """Build a check from the Status.Health of a Redfish resource."""
    health = (resource.get('Status') or {}).get('Health')
    status = health_states.from_vendor(health)
    return health_objects.HardwareHealthCheck(
        category=category,
        component=component,
        status=status,
        message='%s: %s' % (label, health or 'Unknown'),
        blocking=(health == health_states.HealthState.CRITICAL.value
                  and category not in health_states.NON_BLOCKING_CATEGORIES),
        details=details)


def power_checks(power_state, power=None):
    """Checks for the system power state and each power supply."""
    powered_on = power_state == POWER_ON
    checks = [health_objects.HardwareHealthCheck(
        category=Category.POWER,
        component='system_power',
        status=CheckStatus.OK if powered_on else CheckStatus.CRITICAL,
        message='System power state: %s' % power_state,
        blocking=not powered_on,
        recommendation=None if powered_on else REC_POWER_ON)]
    for index, psu in enumerate((power or {}).get('PowerSupplies') or [],
                                start=1):
        checks.append(_vendor_check(
            Category.POWER, 'power_supply_%d' % index,
            'Power Supply %d' % index, psu,
            details={'model': psu.get('Model'),
                     'serial_number': psu.get('SerialNumber')}))
    return checks


def temperature_check(sensor):
    """Compare a temperature sensor to its critical upper threshold.

    :returns: a HardwareHealthCheck, or None for a sensor without a name
        or reading.
    """
    name = sensor.get('Name')
    reading = sensor.get('ReadingCelsius')
    if not name or reading is None:
        return None

    health = (sensor.get('Status') or {}).get('Health')
    threshold = sensor.get('UpperThresholdCritical')
    ratio = CONF.health_gate.temperature_warning_ratio
    status = CheckStatus.OK
    blocking = False
    if (health == health_states.HealthState.CRITICAL.value
            or (threshold and reading > threshold)):
        status = CheckStatus.CRITICAL
        blocking = True
    elif (health == health_states.HealthState.WARNING.value
            or (threshold and reading > threshold * ratio)):
        status = CheckStatus.WARNING

    return health_objects.HardwareHealthCheck(
        category=Category.THERMAL,
        component=_component_name(name),
        status=status,
        message='%s: %s C' % (name, reading),
        blocking=blocking,
        recommendation=REC_THERMAL if blocking else None,
        details={'reading': reading, 'threshold': threshold,
                 'units': 'Celsius'})


def thermal_checks(thermal):
    checks = []
    for sensor in thermal.get('Temperatures') or []:
        check = temperature_check(sensor)
        if check is not None:
            checks.append(check)
    for fan in thermal.get('Fans') or []:
        name = fan.get('Name')
        if not name:
            continue
        check = _vendor_check(Category.THERMAL, _component_name(name), name,
                              fan, details={'rpm': fan.get('Reading'),
                                            'units': 'RPM'})
        if fan.get('Reading'):
            check.message += ' (%s RPM)' % fan['Reading']
        checks.append(check)
    return checks


def storage_checks(controllers):
    """Checks for storage controllers and their drives.

    :param controllers: a list of ``(controller, drives)`` tuples.
    """
    checks = []
    for controller, drives in controllers:
        controller_id = controller.get('Id') or 'storage_controller'
        checks.append(_vendor_check(
            Category.STORAGE, controller_id,
            'Storage Controller %s' % controller_id, controller,
            details={'model': controller.get('Model')}))
        for drive in drives:
            checks.append(_vendor_check(
                Category.STORAGE, 'drive_%s' % drive.get('Id'),
                'Drive %s' % drive.get('Id'), drive,
                details={'capacity': drive.get('CapacityBytes'),
                         'media_type': drive.get('MediaType'),
                         'model': drive.get('Model')}))
    return checks


def memory_checks(dimms):
    """Checks for installed memory modules; absent slots are skipped."""
    return [_vendor_check(Category.MEMORY, 'dimm_%s' % dimm.get('Id'),
                          'Memory %s' % dimm.get('Id'), dimm,
                          details={'capacity': dimm.get('CapacityMiB'),
                                   'speed': dimm.get('OperatingSpeedMhz'),
                                   'manufacturer': dimm.get('Manufacturer')})
            for dimm in dimms
            if (dimm.get('Status') or {}).get('State') == 'Enabled']


def network_checks(interfaces):
    return [_vendor_check(Category.NETWORK,
                          'network_%s' % interface.get('Id'),
                          'Network Interface %s' % interface.get('Id'),
                          interface, details={'name': interface.get('Name')})
            for interface in interfaces]


def firmware_checks(caps):
    """Checks for job queue state and network update eligibility."""
    queue_ok = caps.job_queue_status == generations.JOB_QUEUE_AVAILABLE
    network_ok = bool(caps.network_update_supported)
    known = caps.generation != generations.GEN_UNKNOWN
    return [
        health_objects.HardwareHealthCheck(
            category=Category.FIRMWARE,
            component='job_queue',
            status=CheckStatus.OK if queue_ok else CheckStatus.CRITICAL,
            message='Job queue status: %s' % caps.job_queue_status,
            blocking=not queue_ok,
            recommendation=None if queue_ok else REC_CLEAR_JOB_QUEUE),
        health_objects.HardwareHealthCheck(
            category=Category.FIRMWARE,
            component='network_update_support',
            status=CheckStatus.OK if network_ok else CheckStatus.CRITICAL,
            message='Network update support: %s' % (
                'Available' if network_ok else 'Not supported'),
            blocking=not network_ok,
            recommendation=None if network_ok else REC_NETWORK_UPDATE),
        health_objects.HardwareHealthCheck(
            category=Category.FIRMWARE,
            component='generation_detection',
            status=CheckStatus.OK if known else CheckStatus.WARNING,
            message='Detected generation: %s' % caps.generation,
            details={'generation': caps.generation,
                     'firmware': caps.firmware_version}),
    ]


def security_checks(caps):
    cert_ok = caps.certificate_status == redfish_caps.CERT_VALID
    license_known = caps.license_level != generations.LICENSE_UNKNOWN
    return [
        health_objects.HardwareHealthCheck(
            category=Category.SECURITY,
            component='certificate',
            status=CheckStatus.OK if cert_ok else CheckStatus.WARNING,
            message='Certificate status: %s' % caps.certificate_status,
            recommendation=None if cert_ok else REC_CERTIFICATE),
        health_objects.HardwareHealthCheck(
            category=Category.SECURITY,
            component='license',
            status=CheckStatus.OK if license_known else CheckStatus.WARNING,
            message='License level: %s' % caps.license_level,
            details={'license': caps.license_level}),
    ]


def failed_probe_check(category, error):
    return health_objects.HardwareHealthCheck(
        category=category,
        component='%s_probe' % category.value,
        status=CheckStatus.CRITICAL,
        message=_('%(category)s check failed: %(error)s') % {
            'category': category.value.capitalize(), 'error': error},
        blocking=category not in health_states.NON_BLOCKING_CATEGORIES)


def missing_resource_check(category, error):
    return health_objects.HardwareHealthCheck(
        category=category,
        component='%s_check' % category.value,
        status=CheckStatus.UNKNOWN,
        message=_('%(category)s information is not available: '
                  '%(error)s') % {'category': category.value.capitalize(),
                                  'error': error})


def overall_health(blocking, critical, warnings):
    if blocking > 0 or critical > 2:
        return OverallHealth.CRITICAL
    if critical > 0 or warnings > 3:
        return OverallHealth.DEGRADED
    return OverallHealth.HEALTHY


def readiness_score(checks):
    """Score readiness from 100 down to 0."""
    score = 100
    for check in checks:
        if check.status == CheckStatus.CRITICAL:
            score -= (BLOCKING_CRITICAL_PENALTY if check.blocking
                      else CRITICAL_PENALTY)
        elif check.status == CheckStatus.WARNING:
            score -= WARNING_PENALTY
        elif check.status == CheckStatus.UNKNOWN:
            score -= UNKNOWN_PENALTY
    return max(0, score)


def recommendations(checks, caps=None):
    collected = [check.recommendation for check in checks
                 if check.recommendation]
    if caps is not None:
        if caps.generation in (generations.GEN_12, generations.GEN_13):
            collected.append(REC_IDRAC_FIRMWARE)
        if caps.license_level == generations.LICENSE_BASIC:
            collected.append(REC_LICENSE)
    # Keep the first occurrence of each entry, in order.
    return list(dict.fromkeys(collected))


def estimate_duration(caps=None):
    conf = CONF.health_gate
    minutes = conf.base_duration_minutes
    if caps is None:
        return minutes
    if generations.is_legacy_generation(caps.generation):
        minutes += conf.legacy_generation_extra_minutes
    if caps.license_level in (generations.LICENSE_ENTERPRISE,
                              generations.LICENSE_DATACENTER):
        minutes += conf.license_extra_minutes
    return minutes


def build_result(checks, caps=None):
    """Aggregate checks into a HealthGateResult."""
    blocking = [c for c in checks
                if c.blocking and c.status == CheckStatus.CRITICAL]
    warnings = [c for c in checks if c.status == CheckStatus.WARNING]
    critical = [c for c in checks if c.status == CheckStatus.CRITICAL]
    summary = health_objects.HealthSummary(
        total=len(checks),
        ok=sum(1 for c in checks if c.status == CheckStatus.OK),
        warning=len(warnings),
        critical=len(critical),
        unknown=sum(1 for c in checks if c.status == CheckStatus.UNKNOWN),
        blocking=len(blocking))
    return health_objects.HealthGateResult(
        passed=not blocking,
        overall_health=overall_health(len(blocking), len(critical),
                                      len(warnings)),
        readiness_score=readiness_score(checks),
        checks=list(checks),
        blocking_issues=blocking,
        warnings=warnings,
        summary=summary,
        recommendations=recommendations(checks, caps),
        estimated_duration_minutes=estimate_duration(caps),
        # Nearly every firmware class needs a reboot to activate.
        reboot_required=True)


class HealthGateEvaluator(object):
    """Evaluates the hardware readiness of a server over Redfish.

    :param identity: a ServerIdentity.
    :param credentials: a Credentials object.
    """

    def __init__(self, identity, credentials):
        self.identity = identity
        self.credentials = credentials
        self._probes = [
            (Category.POWER, self._probe_power),
            (Category.THERMAL, self._probe_thermal),
            (Category.STORAGE, self._probe_storage),
            (Category.MEMORY, self._probe_memory),
            (Category.NETWORK, self._probe_network),
            (Category.FIRMWARE, self._probe_firmware),
            (Category.SECURITY, self._probe_security),
        ]

    def _session(self, operation):
        return redfish_utils.RedfishSession(self.identity.host,
                                            self.credentials,
                                            operation=operation)

    def get_capabilities(self):
        with self._session('capability enrichment') as session:
            return redfish_caps.detect_enhanced_capabilities(session)

    @staticmethod
    def _link(resource, name):
        return (resource.get(name) or {}).get('@odata.id')

    def _system_collection(self, session, name):
        system = session.get_first_member(redfish_caps.SYSTEMS)
        path = self._link(system, name)
        if not path:
            raise exception.ProtocolResourceNotFound(
                protocol=protocols.REDFISH, host=self.identity.host,
                resource=name)
        return session.get_members(path)

    def _chassis_resource(self, session, name):
        chassis = session.get_first_member(redfish_caps.CHASSIS)
        path = self._link(chassis, name)
        if not path:
            return None
        return session.get_json(path)

    def _probe_power(self, caps):
        with self._session('power probe') as session:
            power = self._chassis_resource(session, 'Power')
        return power_checks(caps.power_state, power)

    def _probe_thermal(self, caps):
        with self._session('thermal probe') as session:
            thermal = self._chassis_resource(session, 'Thermal')
        if thermal is None:
            raise exception.ProtocolResourceNotFound(
                protocol=protocols.REDFISH, host=self.identity.host,
                resource='Thermal')
        return thermal_checks(thermal)

    def _probe_storage(self, caps):
        with self._session('storage probe') as session:
            controllers = []
            for controller in self._system_collection(session, 'Storage'):
                drives = [session.get_json(ref['@odata.id'])
                          for ref in controller.get('Drives') or []
                          if '@odata.id' in ref]
                controllers.append((controller, drives))
        return storage_checks(controllers)

    def _probe_memory(self, caps):
        with self._session('memory probe') as session:
            dimms = self._system_collection(session, 'Memory')
        return memory_checks(dimms)

    def _probe_network(self, caps):
        with self._session('network probe') as session:
            interfaces = self._system_collection(session,
                                                 'NetworkInterfaces')
        return network_checks(interfaces)

    def _probe_firmware(self, caps):
        return firmware_checks(caps)

    def _probe_security(self, caps):
        return security_checks(caps)

    def _run_probe(self, category, probe, caps):
        try:
            return probe(caps)
        except exception.ProtocolResourceNotFound as e:
            LOG.debug('%(category)s data is not exposed by %(host)s: '
                      '%(error)s', {'category': category.value,
                                    'host': self.identity.host, 'error': e})
            return [missing_resource_check(category, e)]

    def run_probes(self, caps):
        """Run every category probe concurrently.

        :returns: the list of checks, grouped by category in probe order.
        """
        timeout = CONF.health_gate.probe_timeout
        # Probes still running after the timeout are abandoned, not joined.
        executor = futurist.ThreadPoolExecutor(max_workers=len(self._probes))
        try:
            futures = [executor.submit(self._run_probe, category, probe,
                                       caps)
                       for category, probe in self._probes]
            waiters.wait_for_all(futures, timeout=timeout)

            checks = []
            for (category, _probe), future in zip(self._probes, futures):
                if not future.done():
                    future.cancel()
                    LOG.warning('%(category)s probe of %(host)s did not '
                                'finish within %(timeout)s seconds',
                                {'category': category.value,
                                 'host': self.identity.host,
                                 'timeout': timeout})
                    checks.append(failed_probe_check(
                        category, _('timed out after %s seconds') % timeout))
                    continue
                error = future.exception()
                if error is not None:
                    LOG.warning('%(category)s probe of %(host)s failed: '
                                '%(error)s', {'category': category.value,
                                              'host': self.identity.host,
                                              'error': error})
                    checks.append(failed_probe_check(category, error))
                else:
                    checks.extend(future.result())
        finally:
            executor.shutdown(wait=False)
        return checks

    def evaluate(self, caps=None):
        """Produce a readiness verdict for the server.

        :param caps: EnhancedCapabilities, read from the controller when
            not given.
        :returns: a HealthGateResult.
        :raises: ProtocolError if the controller cannot be reached at all.
        """
        if caps is None:
            caps = self.get_capabilities()
        result = build_result(self.run_probes(caps), caps)
        LOG.info('Health gate for %(host)s: passed=%(passed)s, overall '
                 '%(overall)s, score %(score)d, %(blocking)d blocking '
                 'issue(s)', {'host': self.identity.host,
                              'passed': result.passed,
                              'overall': result.overall_health.value,
                              'score': result.readiness_score,
                              'blocking': len(result.blocking_issues)})
        return result

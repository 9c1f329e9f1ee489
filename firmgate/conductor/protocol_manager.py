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
Coordinates the protocol clients of a server.

Clients are always consulted in ascending priority order. Detection and
health checks visit every client and never raise; an update runs on the
first client able to execute the requested mode and falls back to the
next one when that client fails.
"""

import futurist
from futurist import waiters
from oslo_log import log
from oslo_utils import importutils
import tenacity

from firmgate.common import exception
from firmgate.common import health_states
from firmgate.common.i18n import _
from firmgate.common import protocols
from firmgate.common import utils
from firmgate.conf import CONF
from firmgate.objects import protocol as protocol_objects

LOG = log.getLogger(__name__)

CAPABILITY_DETECTED = 'capability-detected'
HEALTH_CHECK = 'health-check'
FALLBACK = 'fallback'
UPDATE_ATTEMPT = 'update-attempt'
UPDATE_RESULT = 'update-result'

EVENTS = (CAPABILITY_DETECTED, HEALTH_CHECK, FALLBACK, UPDATE_ATTEMPT,
          UPDATE_RESULT)

# Seconds allowed on top of a client's own update timeout.
UPDATE_TIMEOUT_GRACE = 30

CLIENT_CLASSES = {
    protocols.REDFISH:
        'firmgate.drivers.modules.redfish.protocol.RedfishProtocolClient',
    protocols.WSMAN: 'firmgate.drivers.modules.wsman.WSManProtocolClient',
    protocols.RACADM: 'firmgate.drivers.modules.racadm.RacadmProtocolClient',
    protocols.IPMI: 'firmgate.drivers.modules.ipmitool.IPMIProtocolClient',
    protocols.SSH: 'firmgate.drivers.modules.ssh.SSHProtocolClient',
}


def load_clients(names=None):
    """Instantiate the protocol clients enabled in the configuration."""
    names = names if names is not None else \
        CONF.protocol_manager.enabled_protocols
    return [importutils.import_object(CLIENT_CLASSES[name])
            for name in names]


class ProtocolManager(object):
    """Priority ordered fallback over a set of protocol clients.

    :param clients: ProtocolClient instances, in any order.
    :param event_sink: optional callable ``sink(event_type, payload)``
        receiving observability events.
    """

    def __init__(self, clients, event_sink=None):
        # sorted() is stable, equal priorities keep the given order.
        self._clients = sorted(clients, key=lambda c: c.priority)
        self._by_protocol = {c.protocol: c for c in self._clients}
        self._event_sink = event_sink
        # A timed out call keeps its worker busy, leave room for it.
        self._executor = futurist.ThreadPoolExecutor(
            max_workers=max(2, len(self._clients)))

    @classmethod
    def from_config(cls, event_sink=None):
        return cls(load_clients(), event_sink=event_sink)

    @property
    def clients(self):
        return list(self._clients)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        for client in self._clients:
            try:
                client.close()
            except Exception as e:
                LOG.warning('Failed to close the %(protocol)s client: '
                            '%(error)s',
                            {'protocol': client.protocol, 'error': e})
        self._executor.shutdown(wait=False)

    def _emit(self, event_type, **payload):
        if self._event_sink is None:
            return
        try:
            self._event_sink(event_type, payload)
        except Exception:
            LOG.exception('Event sink failed to handle a %s event',
                          event_type)

    def _call(self, client, host, operation, timeout, func, *args,
              **kwargs):
        """Run a client call in the executor, bounded by ``timeout``."""
        future = self._executor.submit(func, *args, **kwargs)
        done, _not_done = waiters.wait_for_all([future], timeout=timeout)
        if not done:
            future.cancel()
            raise exception.ProtocolTimeout(protocol=client.protocol,
                                            operation=operation, host=host,
                                            timeout=timeout)
        return future.result()

    def _detect_one(self, client, identity, credentials):
        try:
            return self._call(client, identity.host, 'detect',
                              CONF.protocol_manager.detect_timeout,
                              client.detect_capability, identity,
                              credentials)
        except Exception as e:
            LOG.debug('%(protocol)s detection on %(host)s raised: '
                      '%(error)s', {'protocol': client.protocol,
                                    'host': identity.host, 'error': e})
            return client.unsupported(e)

    def detect(self, identity, credentials):
        """Detect the capabilities of every protocol on a server.

        :param identity: a ServerIdentity.
        :param credentials: a Credentials object.
        :returns: a ProtocolDetectionResult.
        """
        capabilities = []
        for client in self._clients:
            capability = self._detect_one(client, identity, credentials)
            capabilities.append(capability)
            if capability.supported:
                LOG.debug('%(protocol)s is supported on %(host)s, modes: '
                          '%(modes)s', {'protocol': client.protocol,
                                        'host': identity.host,
                                        'modes': sorted(
                                            capability.update_modes)})
                self._emit(CAPABILITY_DETECTED, host=identity.host,
                           protocol=client.protocol, capability=capability)

        healthiest = next((c for c in capabilities if c.supported), None)
        return protocol_objects.ProtocolDetectionResult(
            identity=identity, capabilities=capabilities,
            healthiest=healthiest)

    def health(self, identity, credentials):
        """Check the reachability of every protocol on a server.

        :returns: a list of ProtocolHealth in priority order.
        """
        records = []
        for client in self._clients:
            try:
                record = self._call(client, identity.host, 'health',
                                    CONF.protocol_manager.detect_timeout,
                                    client.health_check, identity,
                                    credentials)
            except Exception as e:
                record = protocol_objects.ProtocolHealth(
                    protocol=client.protocol,
                    status=health_states.ProtocolStatus.UNREACHABLE,
                    details={'error': str(e)},
                    error_classification=exception.classify_error(e))
            records.append(record)
            self._emit(HEALTH_CHECK, host=identity.host,
                       protocol=client.protocol, health=record)
        return records

    def _retrying(self, client, request, cancel_event):
        conf = CONF.protocol_manager
        stop = tenacity.stop_after_attempt(conf.update_attempts)
        sleep = tenacity.nap.sleep
        if cancel_event is not None:
            stop = stop | tenacity.stop_when_event_set(cancel_event)
            sleep = tenacity.nap.sleep_using_event(cancel_event)

        def _before(retry_state):
            LOG.info('Submitting firmware update for %(host)s through '
                     '%(protocol)s, attempt %(attempt)d',
                     {'host': request.host, 'protocol': client.protocol,
                      'attempt': retry_state.attempt_number})
            self._emit(UPDATE_ATTEMPT, host=request.host,
                       protocol=client.protocol, mode=request.mode,
                       attempt=retry_state.attempt_number)

        def _before_sleep(retry_state):
            error = retry_state.outcome.exception()
            delay = retry_state.next_action.sleep
            classification = exception.classify_error(error)
            LOG.warning('Firmware update for %(host)s through %(protocol)s '
                        'failed with a %(class)s error, retrying in '
                        '%(delay).1f seconds: %(error)s',
                        {'host': request.host, 'protocol': client.protocol,
                         'class': classification, 'delay': delay,
                         'error': error})
            self._emit(FALLBACK, host=request.host, protocol=client.protocol,
                       attempt=retry_state.attempt_number, delay=delay,
                       classification=classification, error=str(error),
                       health=health_states.ProtocolStatus.DEGRADED)

        return tenacity.Retrying(
            stop=stop,
            wait=(tenacity.wait_exponential(multiplier=conf.retry_base_delay,
                                            max=conf.retry_max_delay)
                  + tenacity.wait_random(0, conf.retry_jitter)),
            retry=tenacity.retry_if_exception(exception.is_retryable),
            sleep=sleep,
            before=_before,
            before_sleep=_before_sleep,
            reraise=True)

    def _update_timeout(self, client):
        timeout = CONF.protocol_manager.call_timeout
        own = client.update_timeout()
        if own:
            timeout = max(timeout, own + UPDATE_TIMEOUT_GRACE)
        return timeout

    def _submit(self, client, request):
        timeout = self._update_timeout(client)
        try:
            return self._call(client, request.host, 'firmware update',
                              timeout, client.perform_firmware_update,
                              request)
        except exception.ProtocolTimeout as e:
            # The flash may still be in progress, never submit it twice.
            raise exception.UpdateOutcomeUnknown(
                protocol=client.protocol, host=request.host,
                timeout=e.kwargs.get('timeout', timeout)) from e

    def _attempt_update(self, client, request, cancel_event):
        retrying = self._retrying(client, request, cancel_event)
        return retrying(self._submit, client, request)

    def run_update(self, request, cancel_event=None):
        """Run a firmware update on the first capable protocol.

        Transient errors are retried with backoff on the same protocol.
        Any error left after that moves on to the next protocol, except
        critical errors which are raised right away.

        :param request: a FirmwareUpdateRequest.
        :param cancel_event: optional threading.Event stopping the
            fallback between attempts.
        :returns: the FirmwareUpdateResult of the protocol that accepted
            the request.
        :raises: the last protocol error, or ProtocolsExhausted when no
            protocol was able to take the request.
        """
        request.validate()
        identity = request.identity
        last_error = None

        for client in self._clients:
            utils.check_cancelled(cancel_event, 'firmware update',
                                  request.host)
            capability = self._detect_one(client, identity,
                                          request.credentials)
            if not capability.supported or not capability.supports(
                    request.mode):
                LOG.debug('Skipping %(protocol)s for %(host)s, mode '
                          '%(mode)s is not available',
                          {'protocol': client.protocol,
                           'host': request.host, 'mode': request.mode})
                continue

            try:
                result = self._attempt_update(client, request, cancel_event)
            except Exception as e:
                utils.check_cancelled(cancel_event, 'firmware update',
                                      request.host)
                classification = exception.classify_error(e)
                if classification == exception.CRITICAL:
                    raise
                last_error = e
                LOG.warning('Firmware update for %(host)s through '
                            '%(protocol)s failed with a %(class)s error, '
                            'falling back to the next protocol: %(error)s',
                            {'host': request.host,
                             'protocol': client.protocol,
                             'class': classification, 'error': e})
                self._emit(FALLBACK, host=request.host,
                           protocol=client.protocol,
                           classification=classification, error=str(e),
                           health=health_states.ProtocolStatus.DEGRADED)
                continue

            LOG.info('Firmware update for %(host)s accepted by '
                     '%(protocol)s with status %(status)s',
                     {'host': request.host, 'protocol': client.protocol,
                      'status': result.status})
            self._emit(UPDATE_RESULT, host=request.host,
                       protocol=client.protocol, result=result)
            return result

        if last_error is not None:
            raise last_error
        raise exception.ProtocolsExhausted(host=request.host)

    def wait(self, request, result, cancel_event=None):
        """Track a submitted update to its terminal status.

        :raises: TaskFailed if the update ended in failure.
        """
        client = self._by_protocol.get(result.protocol)
        if client is None:
            raise exception.InvalidParameterValue(
                _('No %(protocol)s client is registered to track the '
                  'update of %(host)s') % {'protocol': result.protocol,
                                           'host': request.host})

        result = client.wait_for_completion(request, result,
                                            cancel_event=cancel_event)
        self._emit(UPDATE_RESULT, host=request.host,
                   protocol=client.protocol, result=result)
        if result.status == protocols.FAILED:
            raise exception.TaskFailed(
                task=result.task_location or result.job_id,
                host=request.host,
                state=result.metadata.get('task_state', result.status),
                error='; '.join(result.messages) or _('no details'),
                protocol=client.protocol)
        return result

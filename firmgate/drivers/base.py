# -*- encoding: utf-8 -*-
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may
# not use this file except in compliance with the License. You may obtain
# a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations
# under the License.
"""
Abstract base class for management protocol clients.
"""

import abc
import time

from oslo_log import log as logging

from firmgate.common import exception
from firmgate.common import health_states
from firmgate.objects import protocol as protocol_objects

LOG = logging.getLogger(__name__)


class ProtocolClient(object, metaclass=abc.ABCMeta):
    """Common contract of every management protocol adapter.

    Capability detection and health checks never raise: failures come
    back as an unsupported capability or an unreachable health record.
    Firmware updates raise a classified FirmgateException on failure.
    """

    protocol = None
    """Protocol identifier, one of firmgate.common.protocols.PROTOCOLS."""

    priority = None
    """Fallback priority, lower is preferred."""

    update_modes = frozenset()
    """Update modes this implementation is able to execute."""

    def detect_capability(self, identity, credentials):
        """Detect what the protocol can do on a server.

        :param identity: a ServerIdentity.
        :param credentials: a Credentials object.
        :returns: a ProtocolCapability; ``supported`` is False and ``raw``
            holds the error when detection failed.
        """
        try:
            capability = self._detect(identity, credentials)
        except Exception as e:
            LOG.debug('%(protocol)s capability detection on %(host)s '
                      'failed: %(error)s',
                      {'protocol': self.protocol, 'host': identity.host,
                       'error': e})
            return self.unsupported(e)
        # Never advertise a mode this adapter cannot run.
        capability.update_modes = frozenset(
            capability.update_modes) & self.update_modes
        return capability

    def health_check(self, identity, credentials):
        """Probe protocol reachability.

        :param identity: a ServerIdentity.
        :param credentials: a Credentials object.
        :returns: a ProtocolHealth.
        """
        started = time.monotonic()
        try:
            status = self._probe(identity, credentials)
        except Exception as e:
            return protocol_objects.ProtocolHealth(
                protocol=self.protocol,
                status=health_states.ProtocolStatus.UNREACHABLE,
                latency_ms=(time.monotonic() - started) * 1000,
                details={'error': str(e)},
                error_classification=exception.classify_error(e))
        return protocol_objects.ProtocolHealth(
            protocol=self.protocol,
            status=status or health_states.ProtocolStatus.HEALTHY,
            latency_ms=(time.monotonic() - started) * 1000)

    @abc.abstractmethod
    def perform_firmware_update(self, request):
        """Submit or run a firmware update.

        :param request: a FirmwareUpdateRequest.
        :returns: a FirmwareUpdateResult.
        :raises: FirmgateException subclasses carrying a classification.
        """

    def wait_for_completion(self, request, result, cancel_event=None):
        """Track an asynchronous update to a terminal state.

        Protocols that run updates synchronously return ``result``
        unchanged.

        :param request: the FirmwareUpdateRequest that was submitted.
        :param result: the FirmwareUpdateResult of the submission.
        :param cancel_event: optional threading.Event.
        :returns: a FirmwareUpdateResult in a terminal status.
        """
        return result

    def update_timeout(self):
        """Longest run of perform_firmware_update, in seconds.

        None when the submission is bounded by the protocol manager alone.
        """
        return None

    def close(self):
        """Release resources held by the client."""

    @abc.abstractmethod
    def _detect(self, identity, credentials):
        """Return a ProtocolCapability, raising on failure."""

    @abc.abstractmethod
    def _probe(self, identity, credentials):
        """Contact the protocol endpoint, raising on failure.

        :returns: a ProtocolStatus, or None for healthy.
        """

    def unsupported(self, error):
        return protocol_objects.ProtocolCapability(
            protocol=self.protocol, supported=False,
            raw={'error': str(error),
                 'classification': exception.classify_error(error)})

    def check_mode(self, request):
        if request.mode not in self.update_modes:
            raise exception.UnsupportedUpdateMode(protocol=self.protocol,
                                                  mode=request.mode)

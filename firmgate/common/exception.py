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

"""Firmgate specific exceptions list.

Every exception carries a ``classification`` which drives the retry and
fallback decisions made by the protocol manager:

* ``permanent`` - malformed request, missing fields, unsupported mode.
  Never retried.
* ``transient`` - network timeouts and temporary unavailability. Retried
  with backoff on the same protocol, then the next protocol is tried.
* ``authentication`` - credentials rejected. Not retried with the same
  credentials.
* ``critical`` - all protocols exhausted, an update timed out with an
  unknown outcome, or an internal invariant was violated. Always surfaced
  to the caller.
"""

import errno
import re

from oslo_config import cfg
from oslo_log import log as logging
from oslo_utils import excutils
import requests

from firmgate.common.i18n import _

LOG = logging.getLogger(__name__)

CONF = cfg.CONF

PERMANENT = 'permanent'
TRANSIENT = 'transient'
AUTHENTICATION = 'authentication'
CRITICAL = 'critical'

CLASSIFICATIONS = (PERMANENT, TRANSIENT, AUTHENTICATION, CRITICAL)

_TRANSIENT_ERRNOS = frozenset([
    errno.ECONNRESET,
    errno.ECONNREFUSED,
    errno.ETIMEDOUT,
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
])

_TRANSIENT_MESSAGE_RE = re.compile(
    r'timeout|timed out|network|socket|hang up|reset', re.IGNORECASE)


class FirmgateException(Exception):
    """Base Firmgate Exception

    To correctly use this class, inherit from it and define
    a '_msg_fmt' property. That _msg_fmt will get printf'd
    with the keyword arguments provided to the constructor.

    The ``classification`` class attribute can be overridden per instance
    by passing ``classification`` as a keyword argument.

    If you need to access the message from an exception you should use
    str(exc)

    """

    _msg_fmt = _("An unknown exception occurred.")
    classification = PERMANENT

    def __init__(self, message=None, **kwargs):
        classification = kwargs.pop('classification', None)
        if classification is not None:
            self.classification = classification
        self.kwargs = kwargs

        if not message:
            try:
                message = self._msg_fmt % kwargs

            except Exception:
                with excutils.save_and_reraise_exception() as ctxt:
                    # kwargs doesn't match a variable in the message
                    # log the issue and the kwargs
                    prs = ', '.join('%s=%s' % pair for pair in kwargs.items())
                    LOG.exception('Exception in string format operation '
                                  '(arguments %s)', prs)
                    if not CONF.fatal_exception_format_errors:
                        # at least get the core message out if something
                        # happened
                        message = self._msg_fmt
                        ctxt.reraise = False

        super(FirmgateException, self).__init__(message)

    @property
    def host(self):
        return self.kwargs.get('host')

    @property
    def protocol(self):
        return self.kwargs.get('protocol')

    @property
    def details(self):
        """Remote diagnostic payload, if the raiser supplied one."""
        return self.kwargs.get('details')


class Invalid(FirmgateException):
    _msg_fmt = _("Unacceptable parameters.")


class InvalidParameterValue(Invalid):
    _msg_fmt = "%(err)s"


class MissingParameterValue(InvalidParameterValue):
    _msg_fmt = "%(err)s"


class UnsupportedUpdateMode(Invalid):
    _msg_fmt = _("Protocol %(protocol)s does not support firmware update "
                 "mode %(mode)s.")


class InvalidState(FirmgateException):
    _msg_fmt = _("Invalid resource state.")
    classification = CRITICAL


class Duplicate(FirmgateException):
    _msg_fmt = _("Resource already exists.")


class ConfigInvalid(Invalid):
    _msg_fmt = _("Invalid configuration file. %(error_msg)s")


class ProtocolError(FirmgateException):
    _msg_fmt = _("%(protocol)s %(operation)s on %(host)s failed: "
                 "%(error)s")
    classification = TRANSIENT


class ProtocolConnectionError(ProtocolError):
    _msg_fmt = _("Unable to connect to %(host)s over %(protocol)s: "
                 "%(error)s")


class ProtocolTimeout(ProtocolError):
    _msg_fmt = _("%(protocol)s %(operation)s on %(host)s did not complete "
                 "within %(timeout)s seconds.")


class UpdateOutcomeUnknown(ProtocolError):
    _msg_fmt = _("%(protocol)s firmware update on %(host)s timed out after "
                 "%(timeout)s seconds and may still be running; it is not "
                 "submitted again.")
    classification = CRITICAL


class ProtocolRequestRejected(ProtocolError):
    _msg_fmt = _("%(protocol)s %(operation)s on %(host)s was rejected: "
                 "%(error)s")
    classification = PERMANENT


class ProtocolResourceNotFound(ProtocolError):
    _msg_fmt = _("%(protocol)s resource %(resource)s was not found on "
                 "%(host)s.")


class ProtocolAuthenticationFailure(ProtocolError):
    _msg_fmt = _("Credentials for %(host)s were rejected by %(protocol)s: "
                 "%(error)s")
    classification = AUTHENTICATION


class ProtocolsExhausted(FirmgateException):
    _msg_fmt = _("All protocol fallbacks exhausted for %(host)s.")
    classification = CRITICAL


class TaskPollTimeout(FirmgateException):
    _msg_fmt = _("Task %(task)s on %(host)s did not reach a terminal state "
                 "after %(attempts)s attempts.")
    classification = TRANSIENT


class TaskFailed(FirmgateException):
    _msg_fmt = _("Task %(task)s on %(host)s ended in state %(state)s: "
                 "%(error)s")


class HealthGateFailed(FirmgateException):
    _msg_fmt = _("Health gate for %(host)s failed during %(phase)s with "
                 "blocking issues: %(issues)s")


class MaintenanceModeError(FirmgateException):
    _msg_fmt = _("Unable to %(action)s maintenance mode on %(host)s: "
                 "%(error)s")
    classification = TRANSIENT


class CredentialsNotFound(FirmgateException):
    _msg_fmt = _("No credentials are available for %(host)s.")
    classification = AUTHENTICATION


class OperationCancelled(FirmgateException):
    _msg_fmt = _("Operation %(operation)s on %(host)s was cancelled.")


class SSHConnectFailed(ProtocolConnectionError):
    _msg_fmt = _("Failed to establish SSH connection to host %(host)s: "
                 "%(error)s")


def classify_status(status_code):
    """Map an HTTP status code to an error classification."""
    if status_code >= 500 or status_code == 404:
        return TRANSIENT
    if status_code in (401, 403):
        return AUTHENTICATION
    return PERMANENT


def _status_code(exc):
    status = getattr(exc, 'status_code', None)
    if status is None:
        response = getattr(exc, 'response', None)
        status = getattr(response, 'status_code', None)
    return status if isinstance(status, int) else None


def classify_error(exc):
    """Classify an arbitrary exception.

    :param exc: the exception instance.
    :returns: one of ``permanent``, ``transient``, ``authentication`` or
        ``critical``.
    """
    if isinstance(exc, FirmgateException):
        return exc.classification

    status = _status_code(exc)
    if status is not None:
        return classify_status(status)

    if isinstance(exc, (ConnectionError, TimeoutError,
                        requests.ConnectionError, requests.Timeout)):
        return TRANSIENT

    if isinstance(exc, OSError) and exc.errno in _TRANSIENT_ERRNOS:
        return TRANSIENT

    if _TRANSIENT_MESSAGE_RE.search(str(exc)):
        return TRANSIENT

    return PERMANENT


def is_retryable(exc):
    """Only transient errors are retried on the same protocol."""
    return classify_error(exc) == TRANSIENT

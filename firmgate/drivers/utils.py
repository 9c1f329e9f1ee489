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

"""Helpers shared by command line based protocol clients."""

import logging
import re

from oslo_concurrency import processutils
from oslo_log import log

from firmgate.common import exception
from firmgate.common import utils

LOG = log.getLogger(__name__)

_AUTH_FAILURE_RE = re.compile(
    r'login failed|unable to login|authentication|unauthorized|'
    r'invalid (user ?name|credentials)|password', re.IGNORECASE)


def mask_secrets(cmd, secrets):
    """Join ``cmd`` for display with every secret replaced by ``***``."""
    secrets = [secret for secret in secrets if secret]
    return ' '.join('***' if arg in secrets else str(arg) for arg in cmd)


def _masked_error(error, cmd, secrets):
    return processutils.ProcessExecutionError(
        stdout=error.stdout, stderr=error.stderr, exit_code=error.exit_code,
        cmd=mask_secrets(cmd, secrets), description=error.description)


def run_command(protocol, host, operation, cmd, timeout, secrets=()):
    """Run a local management utility against a remote host.

    :param protocol: protocol identifier used in errors.
    :param host: target host used in errors.
    :param operation: operation name used in errors.
    :param cmd: the full argument list.
    :param timeout: seconds after which the command is killed.
    :param secrets: arguments of ``cmd`` that must never be logged.
    :returns: the command stdout.
    :raises: ProtocolAuthenticationFailure when credentials are rejected.
    :raises: ProtocolError (transient) for any other non-zero exit.
    :raises: ProtocolError (permanent) when the utility is not installed.
    """
    kwargs = {}
    if secrets:
        LOG.debug('Running cmd (subprocess): %s', mask_secrets(cmd, secrets))
        # processutils only masks password=value style arguments.
        kwargs['loglevel'] = logging.NOTSET
    try:
        out, _err = utils.execute(*cmd, timeout=timeout, **kwargs)
    except processutils.ProcessExecutionError as e:
        if secrets:
            e = _masked_error(e, cmd, secrets)
        output = '%s %s' % (e.stdout or '', e.stderr or '')
        if _AUTH_FAILURE_RE.search(output):
            raise exception.ProtocolAuthenticationFailure(
                protocol=protocol, host=host, operation=operation,
                error=(e.stderr or e.stdout or '').strip()) from e
        raise exception.ProtocolError(
            protocol=protocol, host=host, operation=operation,
            error='exit code %s: %s' % (e.exit_code,
                                         (e.stderr or '').strip()),
            details={'exit_code': e.exit_code}) from e
    except OSError as e:
        raise exception.ProtocolError(
            protocol=protocol, host=host, operation=operation, error=e,
            classification=exception.PERMANENT) from e
    return out

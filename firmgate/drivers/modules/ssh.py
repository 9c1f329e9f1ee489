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
SSH protocol client.

Reaches the host operating system rather than the management controller.
Firmware is applied by running a Dell Update Package (DUP) in silent mode.
"""

import io
import posixpath
import shlex

from oslo_concurrency import processutils
from oslo_log import log as logging
from oslo_utils import timeutils
import paramiko

from firmgate.common import exception
from firmgate.common.i18n import _
from firmgate.common import protocols
from firmgate.conf import CONF
from firmgate.drivers import base
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects

LOG = logging.getLogger(__name__)

DUP_SUCCESS = 0
DUP_REBOOT_REQUIRED = 2
DUP_REBOOTING = 6

_KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


def _load_private_key(key_contents):
    for key_class in _KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(key_contents))
        except paramiko.SSHException:
            continue
    # Can't include the key contents - secure material.
    raise exception.InvalidParameterValue(err=_("Invalid private key"))


def ssh_connect(host, credentials):
    """Method to connect to a remote system using ssh protocol.

    :param host: address of the remote system.
    :param credentials: a Credentials object.
    :returns: paramiko.SSHClient, an active ssh connection.
    :raises: ProtocolAuthenticationFailure if the credentials are rejected.
    :raises: SSHConnectFailed if the connection cannot be established.
    """
    pkey = (_load_private_key(credentials.private_key)
            if credentials.private_key else None)
    ssh = paramiko.SSHClient()
    ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        ssh.connect(host,
                    username=credentials.username,
                    password=credentials.password,
                    port=credentials.port or CONF.ssh.port,
                    pkey=pkey,
                    timeout=CONF.ssh.connect_timeout,
                    allow_agent=False,
                    look_for_keys=False)
        # send TCP keepalive packets every 20 seconds
        ssh.get_transport().set_keepalive(20)
    except paramiko.AuthenticationException as e:
        ssh.close()
        raise exception.ProtocolAuthenticationFailure(
            protocol=protocols.SSH, host=host, operation='connect',
            error=e) from e
    except Exception as e:
        ssh.close()
        LOG.debug("SSH connect to %(host)s failed: %(error)s",
                  {'host': host, 'error': e})
        raise exception.SSHConnectFailed(protocol=protocols.SSH, host=host,
                                         error=e) from e
    return ssh


def _ssh_execute(ssh_obj, host, cmd_to_exec):
    """Executes a command via ssh.

    :param ssh_obj: paramiko.SSHClient, an active ssh connection.
    :param host: remote host, used in errors.
    :param cmd_to_exec: command to execute.
    :returns: the command stdout.
    :raises: ProtocolError on an error from ssh.
    """
    try:
        return processutils.ssh_execute(ssh_obj, cmd_to_exec)[0]
    except Exception as e:
        LOG.error("Cannot execute SSH cmd %(cmd)s. Reason: %(err)s.",
                  {'cmd': cmd_to_exec, 'err': e})
        raise exception.ProtocolError(protocol=protocols.SSH, host=host,
                                      operation=cmd_to_exec,
                                      error=e) from e


class SSHProtocolClient(base.ProtocolClient):

    protocol = protocols.SSH
    priority = protocols.PRIORITIES[protocols.SSH]
    update_modes = frozenset([protocols.OS_DRIVER_UPDATE])

    def _detect(self, identity, credentials):
        ssh = ssh_connect(identity.host, credentials)
        try:
            uname = _ssh_execute(ssh, identity.host, 'uname -a').strip()
        finally:
            ssh.close()
        return protocol_objects.ProtocolCapability(
            protocol=self.protocol,
            supported=True,
            manager_type='os',
            update_modes=self.update_modes,
            raw={'uname': uname})

    def _probe(self, identity, credentials):
        ssh = ssh_connect(identity.host, credentials)
        try:
            _ssh_execute(ssh, identity.host, 'uptime')
        finally:
            ssh.close()

    def _package_command(self, image_uri):
        name = posixpath.basename(image_uri.split('?', 1)[0]) or 'update.bin'
        target = posixpath.join(CONF.ssh.staging_dir, name)
        return ' && '.join([
            'curl -fsSL -o %s %s' % (shlex.quote(target),
                                     shlex.quote(image_uri)),
            'chmod +x %s' % shlex.quote(target),
            '%s -q' % shlex.quote(target),
        ])

    def update_timeout(self):
        return CONF.ssh.connect_timeout + CONF.ssh.command_timeout

    def perform_firmware_update(self, request):
        """Download and run an update package inside the host OS.

        Exit status 0 is success; 2 and 6 are success with a reboot
        pending or in progress.
        """
        self.check_mode(request)
        component = request.components[0] if request.components else None
        if component is None or not component.image_uri:
            raise exception.MissingParameterValue(
                _('OS driver update on %s requires a package URI')
                % request.host)

        command = self._package_command(component.image_uri)
        started_at = timeutils.utcnow()
        ssh = ssh_connect(request.host, request.credentials)
        try:
            LOG.info('Running update package %(uri)s on %(host)s',
                     {'uri': component.image_uri, 'host': request.host})
            _stdin, stdout, stderr = ssh.exec_command(
                command, timeout=CONF.ssh.command_timeout)
            exit_status = stdout.channel.recv_exit_status()
            output = stdout.read().decode('utf-8', 'replace')
            error_output = stderr.read().decode('utf-8', 'replace')
        except OSError as e:
            raise exception.ProtocolTimeout(
                protocol=self.protocol, host=request.host,
                operation='firmware update',
                timeout=CONF.ssh.command_timeout) from e
        finally:
            ssh.close()

        if exit_status not in (DUP_SUCCESS, DUP_REBOOT_REQUIRED,
                               DUP_REBOOTING):
            raise exception.ProtocolRequestRejected(
                protocol=self.protocol, host=request.host,
                operation='firmware update',
                error=_('update package exited with %(code)s: %(err)s')
                % {'code': exit_status, 'err': error_output.strip()},
                details={'exit_code': exit_status})

        return firmware_objects.FirmwareUpdateResult(
            protocol=self.protocol, status=protocols.COMPLETED,
            started_at=started_at, completed_at=timeutils.utcnow(),
            messages=[line for line in output.splitlines() if line.strip()],
            reboot_required=exit_status != DUP_SUCCESS)

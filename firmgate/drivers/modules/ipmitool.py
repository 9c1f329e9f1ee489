# coding=utf-8

# Copyright 2012 Hewlett-Packard Development Company, L.P.
# Copyright (c) 2012 NTT DOCOMO, INC.
# Copyright 2014 International Business Machines Corporation
# All Rights Reserved.
#
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
IPMI protocol client based on ipmitool.

Used for reachability and identification of controllers that do not speak
anything better, and for HPM firmware upgrades from a local image file.
"""

import contextlib
import os
import re
import tempfile

from oslo_log import log as logging
from oslo_utils import timeutils

from firmgate.common import exception
from firmgate.common import generations
from firmgate.common.i18n import _
from firmgate.common import protocols
from firmgate.conf import CONF
from firmgate.drivers import base
from firmgate.drivers import utils as driver_utils
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects

LOG = logging.getLogger(__name__)

_FIELD_RE = re.compile(r'^\s*([^:]+?)\s*:\s*(.*?)\s*$', re.MULTILINE)


def parse_fields(output):
    """Parse ``Name : value`` lines printed by ipmitool."""
    return {name: value for name, value in _FIELD_RE.findall(output or '')}


@contextlib.contextmanager
def _make_password_file(password):
    """Makes a temporary file that contains the password.

    :param password: the password
    :returns: the absolute pathname of the temporary file
    :raises: ProtocolError (permanent) if an error is encountered while
             creating or writing the temporary file
    """
    f = None
    try:
        f = tempfile.NamedTemporaryFile(mode='w')
        f.write(str(password))
        f.flush()
    except (IOError, OSError) as exc:
        if f is not None:
            f.close()
        raise exception.ProtocolError(
            protocol=protocols.IPMI, host='localhost',
            operation='password file', error=exc,
            classification=exception.PERMANENT)

    try:
        # NOTE(jlvillal): This yield can not be in the try/except block above
        # because an exception by the caller of this function would then get
        # changed to a password file error which would mislead about the
        # problem and its cause.
        yield f.name
    finally:
        if f is not None:
            f.close()


def _local_image_path(component):
    location = component.image_uri or ''
    if location.startswith('file://'):
        location = location[len('file://'):]
    if not location or not os.path.isabs(location):
        return None
    return location


class IPMIProtocolClient(base.ProtocolClient):

    protocol = protocols.IPMI
    priority = protocols.PRIORITIES[protocols.IPMI]
    update_modes = frozenset([protocols.CUSTOM_PROTOCOL])

    def _ipmitool(self, host, credentials, operation, command, timeout=None):
        args = [CONF.ipmi.binary, '-I', CONF.ipmi.interface, '-H', host,
                '-U', credentials.username]
        if credentials.port:
            args.extend(['-p', str(credentials.port)])
        with _make_password_file(credentials.password or '\0') as pw_file:
            args.extend(['-f', pw_file])
            args.extend(command)
            return driver_utils.run_command(
                self.protocol, host, operation, args,
                timeout or CONF.ipmi.command_timeout)

    def _detect(self, identity, credentials):
        fields = parse_fields(self._ipmitool(identity.host, credentials,
                                             'detect', ['mc', 'info']))
        version = fields.get('Firmware Revision')
        return protocol_objects.ProtocolCapability(
            protocol=self.protocol,
            supported=True,
            firmware_version=version,
            manager_type=fields.get('Manufacturer Name'),
            generation=generations.detect_generation(version),
            update_modes=self.update_modes,
            raw=fields)

    def _probe(self, identity, credentials):
        self._ipmitool(identity.host, credentials, 'health',
                       ['chassis', 'status'])

    def update_timeout(self):
        return CONF.ipmi.upgrade_timeout

    def perform_firmware_update(self, request):
        """Run an HPM upgrade from a local image file.

        The upgrade runs to completion before returning.
        """
        self.check_mode(request)
        path = (_local_image_path(request.components[0])
                if request.components else None)
        if path is None:
            raise exception.MissingParameterValue(
                _('HPM upgrade on %s requires an absolute local image '
                  'path') % request.host)

        started_at = timeutils.utcnow()
        LOG.info('Running HPM upgrade of %(host)s with %(path)s',
                 {'host': request.host, 'path': path})
        output = self._ipmitool(request.host, request.credentials,
                                'firmware update',
                                ['hpm', 'upgrade', path, 'force', 'activate'],
                                timeout=CONF.ipmi.upgrade_timeout)
        return firmware_objects.FirmwareUpdateResult(
            protocol=self.protocol, status=protocols.COMPLETED,
            started_at=started_at, completed_at=timeutils.utcnow(),
            messages=[line for line in output.splitlines() if line.strip()])

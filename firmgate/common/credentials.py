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

"""Credential resolution for management controllers."""

import abc
import os

import netaddr
from oslo_log import log

from firmgate.common import exception
from firmgate.common.i18n import _
from firmgate.conf import CONF
from firmgate.objects import protocol as protocol_objects

LOG = log.getLogger(__name__)

_ENV_PREFIX = 'env:'


class CredentialResolver(object, metaclass=abc.ABCMeta):
    """Supplies candidate credentials for a target address."""

    @abc.abstractmethod
    def resolve(self, host):
        """Return the ordered credential candidates for a host.

        :param host: address or name of the management controller.
        :returns: a list of Credentials, most specific first. May be empty.
        """

    def first(self, host):
        candidates = self.resolve(host)
        if not candidates:
            raise exception.CredentialsNotFound(host=host)
        return candidates[0]


def _expand_secret(secret):
    if secret and secret.startswith(_ENV_PREFIX):
        name = secret[len(_ENV_PREFIX):]
        try:
            return os.environ[name]
        except KeyError:
            raise exception.ConfigInvalid(
                error_msg=_('Environment variable %s referenced by a '
                            'credential is not set') % name)
    return secret


def parse_override(entry):
    """Parse a ``<host or CIDR>=<username>:<secret>`` assignment.

    :returns: a tuple of (target, Credentials).
    :raises: ConfigInvalid if the entry is malformed.
    """
    target, sep, value = entry.partition('=')
    username, sep2, secret = value.partition(':')
    if not sep or not sep2 or not target.strip() or not username.strip():
        # Do not echo the entry, it carries a secret.
        raise exception.ConfigInvalid(
            error_msg=_('Credential overrides must be of the form '
                        '<host or CIDR>=<username>:<secret>'))
    return target.strip(), protocol_objects.Credentials(
        username=username.strip(), password=_expand_secret(secret))


class StaticCredentialResolver(CredentialResolver):
    """Resolves credentials from statically configured assignments.

    Candidates are returned host override first, then every matching
    address range from the most specific prefix, then the default profile.
    """

    def __init__(self, host_overrides=None, range_overrides=None,
                 default=None):
        self._hosts = {}
        for host, creds in host_overrides or []:
            self._hosts.setdefault(host.lower(), []).append(creds)
        self._ranges = sorted(
            ((netaddr.IPNetwork(cidr), creds)
             for cidr, creds in range_overrides or []),
            key=lambda item: item[0].prefixlen, reverse=True)
        self._default = default

    @classmethod
    def from_config(cls, conf=None):
        conf = conf or CONF
        hosts = []
        ranges = []
        for entry in conf.credentials.overrides:
            target, creds = parse_override(entry)
            if '/' in target:
                try:
                    netaddr.IPNetwork(target)
                except (netaddr.AddrFormatError, ValueError):
                    raise exception.ConfigInvalid(
                        error_msg=_('Invalid address range %s in credential '
                                    'overrides') % target)
                ranges.append((target, creds))
            else:
                hosts.append((target, creds))

        default = None
        password = _expand_secret(conf.credentials.default_password)
        if password is not None:
            default = protocol_objects.Credentials(
                username=conf.credentials.default_username,
                password=password)
        return cls(host_overrides=hosts, range_overrides=ranges,
                   default=default)

    def _matching_ranges(self, host):
        try:
            address = netaddr.IPAddress(host)
        except (netaddr.AddrFormatError, ValueError):
            return []
        return [creds for network, creds in self._ranges
                if address in network]

    def resolve(self, host):
        candidates = list(self._hosts.get(host.lower(), []))
        candidates.extend(self._matching_ranges(host))
        if self._default is not None:
            candidates.append(self._default)

        unique = []
        for creds in candidates:
            if creds not in unique:
                unique.append(creds)
        LOG.debug('Resolved %(count)d credential candidate(s) for %(host)s',
                  {'count': len(unique), 'host': host})
        return unique

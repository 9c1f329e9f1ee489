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
Command line entry point for firmware update orchestration.
"""

import dataclasses
import sys

import futurist
from oslo_config import cfg
from oslo_log import log
from oslo_serialization import jsonutils

from firmgate.common import credentials as credentials_mod
from firmgate.common import exception
from firmgate.common.i18n import _
from firmgate.common import job_store
from firmgate.common import protocols
from firmgate.common import service
from firmgate.common import vcenter
from firmgate.conductor import health_gate
from firmgate.conductor import protocol_manager
from firmgate.conductor import update_flow
from firmgate.conf import CONF
from firmgate.objects import base as objects_base
from firmgate.objects import firmware as firmware_objects
from firmgate.objects import protocol as protocol_objects

LOG = log.getLogger(__name__)


def _print(data):
    print(jsonutils.dumps(data, indent=2, sort_keys=True))


def log_event(event_type, payload):
    """Event sink writing protocol manager events to the log."""
    LOG.info('%(event)s: %(payload)s',
             {'event': event_type,
              'payload': {k: (objects_base.as_dict(v)
                              if dataclasses.is_dataclass(v) else v)
                          for k, v in payload.items()}})


class FirmwareCommand(object):

    def __init__(self, resolver=None):
        self._resolver = resolver

    @property
    def resolver(self):
        if self._resolver is None:
            self._resolver = (
                credentials_mod.StaticCredentialResolver.from_config())
        return self._resolver

    def _credentials(self, host):
        if CONF.command.username:
            return protocol_objects.Credentials(
                username=CONF.command.username,
                password=CONF.command.password)
        return self.resolver.first(host)

    @staticmethod
    def _manager():
        return protocol_manager.ProtocolManager.from_config(
            event_sink=log_event)

    def detect(self):
        results = []
        for host in CONF.command.host:
            identity = protocol_objects.ServerIdentity(host=host)
            with self._manager() as manager:
                detection = manager.detect(identity, self._credentials(host))
            results.append(objects_base.as_dict(detection))
        _print(results)
        return 0

    def health(self):
        results = {}
        for host in CONF.command.host:
            identity = protocol_objects.ServerIdentity(host=host)
            with self._manager() as manager:
                records = manager.health(identity, self._credentials(host))
            results[host] = [objects_base.as_dict(r) for r in records]
        _print(results)
        return 0

    def gate(self):
        results = {}
        rc = 0
        for host in CONF.command.host:
            identity = protocol_objects.ServerIdentity(host=host)
            evaluator = health_gate.HealthGateEvaluator(
                identity, self._credentials(host))
            try:
                result = evaluator.evaluate()
            except exception.FirmgateException as e:
                rc = 1
                results[host] = {'error': str(e),
                                 'classification': e.classification}
                continue
            if not result.passed:
                rc = 1
            results[host] = objects_base.as_dict(result)
        _print(results)
        return rc

    def _request(self, host):
        args = CONF.command
        components = [firmware_objects.FirmwareComponent(
            id='component-%d' % index, image_uri=uri)
            for index, uri in enumerate(args.image_uri or [], start=1)]
        return firmware_objects.FirmwareUpdateRequest(
            host=host,
            credentials=(self._credentials(host) if args.username else None),
            mode=args.mode,
            components=components,
            repository_url=args.repository_url,
            apply_time=args.apply_time)

    @staticmethod
    def _maintenance():
        if CONF.vcenter.url:
            return vcenter.VCenterMaintenanceOrchestrator()
        return vcenter.NoopMaintenanceOrchestrator()

    def _update_host(self, host, store):
        with self._manager() as manager:
            flow = update_flow.UpdateFlow(
                self._request(host), manager,
                credential_resolver=self.resolver,
                maintenance=self._maintenance(),
                job_store=store)
            try:
                flow.run()
            except exception.FirmgateException as e:
                LOG.error('Update of %(host)s failed: %(error)s',
                          {'host': host, 'error': e})
            return flow.job_id

    def update(self):
        """Update every host given on the command line concurrently."""
        store = job_store.InMemoryJobStore()
        hosts = CONF.command.host
        workers = min(CONF.max_concurrent_hosts, len(hosts))
        with futurist.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {host: executor.submit(self._update_host, host, store)
                       for host in hosts}

        rc = 0
        report = {}
        for host, future in futures.items():
            job = store.get(future.result())
            job.pop('events', None)
            if job['status'] != update_flow.SUCCEEDED:
                rc = 1
            report[host] = job
        _print(report)
        return rc


def add_command_parsers(subparsers):
    command_object = FirmwareCommand()

    def _common(parser):
        parser.add_argument('--host', action='append', required=True,
                            help=_('Management controller address. May be '
                                   'repeated.'))
        parser.add_argument('--username',
                            help=_('User name, overrides the configured '
                                   'credentials.'))
        parser.add_argument('--password',
                            help=_('Password matching --username.'))

    parser = subparsers.add_parser(
        'detect',
        help=_('Detect the management protocols supported by servers.'))
    _common(parser)
    parser.set_defaults(func=command_object.detect)

    parser = subparsers.add_parser(
        'health',
        help=_('Check the reachability of every management protocol.'))
    _common(parser)
    parser.set_defaults(func=command_object.health)

    parser = subparsers.add_parser(
        'gate',
        help=_('Evaluate the hardware health gate. Returns 1 if any server '
               'is not ready for a firmware update.'))
    _common(parser)
    parser.set_defaults(func=command_object.gate)

    parser = subparsers.add_parser(
        'update',
        help=_('Run the firmware update workflow on servers. Servers are '
               'updated concurrently, up to [DEFAULT]max_concurrent_hosts '
               'at a time. Returns 1 if any update failed.'))
    _common(parser)
    parser.add_argument('--mode', choices=protocols.UPDATE_MODES,
                        default=protocols.SIMPLE_UPDATE,
                        help=_('Firmware update mode.'))
    parser.add_argument('--image-uri', dest='image_uri', action='append',
                        help=_('Location of a firmware image. May be '
                               'repeated.'))
    parser.add_argument('--repository-url', dest='repository_url',
                        help=_('Firmware repository or catalog location.'))
    parser.add_argument('--apply-time', dest='apply_time',
                        choices=protocols.APPLY_TIMES,
                        default=protocols.APPLY_IMMEDIATE,
                        help=_('When the controller applies the update.'))
    parser.set_defaults(func=command_object.update)


def main():
    command_opt = cfg.SubCommandOpt('command',
                                    title='Command',
                                    help=_('Available commands'),
                                    handler=add_command_parsers)

    CONF.register_cli_opt(command_opt)

    service.prepare_command(sys.argv)
    sys.exit(CONF.command.func())

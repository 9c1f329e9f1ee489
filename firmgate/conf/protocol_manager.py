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

from oslo_config import cfg

from firmgate.common.i18n import _
from firmgate.common import protocols

opts = [
    cfg.ListOpt('enabled_protocols',
                item_type=cfg.types.String(choices=protocols.PROTOCOLS),
                default=list(protocols.PROTOCOLS),
                help=_('Management protocols to use. Regardless of the '
                       'order given here, protocols are always tried in '
                       'ascending priority order: redfish, wsman, racadm, '
                       'ipmi, ssh.')),
    cfg.IntOpt('update_attempts',
               min=1,
               default=3,
               help=_('Number of attempts made on a single protocol when '
                      'submitting a firmware update fails with a transient '
                      'error, before falling back to the next protocol.')),
    cfg.FloatOpt('retry_base_delay',
                 min=0,
                 default=1.0,
                 help=_('Base delay in seconds of the exponential backoff '
                        'between update attempts.')),
    cfg.FloatOpt('retry_max_delay',
                 min=0,
                 default=60.0,
                 help=_('Maximum delay in seconds between update '
                        'attempts.')),
    cfg.FloatOpt('retry_jitter',
                 min=0,
                 default=1.0,
                 help=_('Maximum random jitter in seconds added to each '
                        'backoff delay.')),
    cfg.IntOpt('call_timeout',
               min=1,
               default=600,
               help=_('Timeout in seconds for submitting a firmware update '
                      'through a single protocol. Clients running the '
                      'update synchronously get at least their own update '
                      'timeout. A timed out submission is never retried '
                      'since the update may still be running.')),
    cfg.IntOpt('detect_timeout',
               min=1,
               default=60,
               help=_('Timeout in seconds for a single capability detection '
                      'or protocol health check.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='protocol_manager')

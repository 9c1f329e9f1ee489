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

opts = [
    cfg.PortOpt('port',
                default=443,
                help=_('Port of the WS-Management endpoint.')),
    cfg.StrOpt('path',
               default='/wsman',
               help=_('Path of the WS-Management endpoint.')),
    cfg.StrOpt('protocol',
               default='https',
               choices=['http', 'https'],
               help=_('Scheme used to reach the WS-Management endpoint.')),
    cfg.BoolOpt('verify_ca',
                default=False,
                help=_('Verify the TLS certificate of the WS-Management '
                       'endpoint.')),
    cfg.IntOpt('request_timeout',
               min=1,
               default=60,
               help=_('Timeout in seconds for a single WS-Management '
                      'request.')),
    cfg.IntOpt('job_poll_interval',
               min=0,
               default=15,
               help=_('Number of seconds to wait between polls of a '
                      'lifecycle controller job.')),
    cfg.IntOpt('job_poll_attempts',
               min=1,
               default=120,
               help=_('Maximum number of polls of a lifecycle controller '
                      'job.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='wsman')

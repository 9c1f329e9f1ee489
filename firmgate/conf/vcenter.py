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
    cfg.URIOpt('url',
               schemes=('http', 'https'),
               help=_('Base URL of the vCenter server, e.g. '
                      'https://vcenter.example.com.')),
    cfg.StrOpt('username',
               help=_('vCenter user name.')),
    cfg.StrOpt('password',
               secret=True,
               help=_('vCenter password.')),
    cfg.BoolOpt('verify_ca',
                default=True,
                help=_('Verify the TLS certificate of the vCenter server.')),
    cfg.IntOpt('request_timeout',
               min=1,
               default=60,
               help=_('Timeout in seconds for a single vCenter request.')),
    cfg.BoolOpt('evacuate_vms',
                default=True,
                help=_('Evacuate powered off and suspended virtual machines '
                       'when entering maintenance mode.')),
    cfg.IntOpt('maintenance_timeout_minutes',
               min=1,
               default=60,
               help=_('Time in minutes vCenter may take to place a host in '
                      'maintenance mode.')),
    cfg.IntOpt('task_poll_interval',
               min=0,
               default=10,
               help=_('Number of seconds to wait between polls of a '
                      'vCenter task.')),
    cfg.IntOpt('task_poll_attempts',
               min=1,
               default=360,
               help=_('Maximum number of polls of a vCenter task.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='vcenter')

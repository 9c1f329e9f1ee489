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
                default=22,
                help=_('Default SSH port of the host operating system, used '
                       'when the credentials do not carry one.')),
    cfg.IntOpt('connect_timeout',
               min=1,
               default=10,
               help=_('Timeout in seconds for establishing an SSH '
                      'connection.')),
    cfg.IntOpt('command_timeout',
               min=1,
               default=1800,
               help=_('Timeout in seconds for an update package to run.')),
    cfg.StrOpt('staging_dir',
               default='/tmp',
               help=_('Directory on the host where update packages are '
                      'downloaded before being run.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='ssh')

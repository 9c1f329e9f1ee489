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
    cfg.StrOpt('binary',
               default='racadm',
               help=_('Path of the remote racadm utility.')),
    cfg.IntOpt('command_timeout',
               min=1,
               default=300,
               help=_('Timeout in seconds for a single racadm command.')),
    cfg.IntOpt('job_poll_interval',
               min=0,
               default=30,
               help=_('Number of seconds to wait between polls of a racadm '
                      'job.')),
    cfg.IntOpt('job_poll_attempts',
               min=1,
               default=60,
               help=_('Maximum number of polls of a racadm job.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='racadm')

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
    cfg.IntOpt('probe_timeout',
               min=1,
               default=120,
               help=_('Time in seconds to wait for all hardware probes. A '
                      'probe still running afterwards is reported as '
                      'failed.')),
    cfg.FloatOpt('temperature_warning_ratio',
                 min=0,
                 max=1,
                 default=0.9,
                 help=_('Fraction of the critical temperature threshold '
                        'above which a sensor reading raises a warning.')),
    cfg.IntOpt('base_duration_minutes',
               min=0,
               default=15,
               help=_('Base estimate in minutes for a firmware update.')),
    cfg.IntOpt('legacy_generation_extra_minutes',
               min=0,
               default=10,
               help=_('Minutes added to the estimate for 11G and 12G '
                      'servers.')),
    cfg.IntOpt('license_extra_minutes',
               min=0,
               default=5,
               help=_('Minutes added to the estimate for Enterprise and '
                      'Datacenter licensed controllers.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='health_gate')

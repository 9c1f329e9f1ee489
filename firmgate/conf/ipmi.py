# Copyright 2016 Intel Corporation
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

from oslo_config import cfg

from firmgate.common.i18n import _

opts = [
    cfg.StrOpt('binary',
               default='ipmitool',
               help=_('Path of the ipmitool utility.')),
    cfg.StrOpt('interface',
               default='lanplus',
               choices=['lan', 'lanplus'],
               help=_('IPMI interface used by ipmitool.')),
    cfg.IntOpt('command_timeout',
               min=1,
               default=60,
               help=_('Timeout in seconds for ipmitool status commands.')),
    cfg.IntOpt('upgrade_timeout',
               min=1,
               default=1800,
               help=_('Timeout in seconds for an HPM firmware upgrade.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='ipmi')

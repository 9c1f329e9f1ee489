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
    cfg.StrOpt('default_username',
               default='root',
               help=_('User name of the default credential profile.')),
    cfg.StrOpt('default_password',
               secret=True,
               help=_('Secret of the default credential profile. A value '
                      'of the form env:NAME is read from the environment '
                      'variable NAME.')),
    cfg.ListOpt('overrides',
                default=[],
                secret=True,
                help=_('Credential assignments of the form '
                       '<host or CIDR>=<username>:<secret>. Host '
                       'assignments take precedence over CIDR ranges, '
                       'which take precedence over the default profile.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='credentials')

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

exc_log_opts = [
    cfg.BoolOpt('fatal_exception_format_errors',
                default=False,
                help=_('Used if there is a formatting error when generating '
                       'an exception message (a programming error). If '
                       'True, raise an exception; if False, use the '
                       'unformatted message.')),
]

workflow_opts = [
    cfg.IntOpt('max_concurrent_hosts',
               min=1,
               default=8,
               help=_('Maximum number of hosts whose update workflows run '
                      'at the same time. Each host is handled by exactly '
                      'one workflow.')),
    cfg.BoolOpt('postcheck_enabled',
                default=True,
                help=_('Re-run the hardware health gate after firmware has '
                       'been applied. A blocking issue found after the '
                       'update fails the run but does not roll the update '
                       'back.')),
]


def list_opts():
    _default_opt_lists = [
        exc_log_opts,
        workflow_opts,
    ]
    full_opt_list = []
    for options in _default_opt_lists:
        full_opt_list.extend(options)
    return full_opt_list


def register_opts(conf):
    conf.register_opts(exc_log_opts)
    conf.register_opts(workflow_opts)

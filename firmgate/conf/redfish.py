# Copyright 2017 Red Hat, Inc.
# All Rights Reserved.
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
    cfg.BoolOpt('verify_ca',
                default=True,
                help=_('Verify the TLS certificate presented by the BMC.')),
    cfg.IntOpt('request_timeout',
               min=1,
               default=60,
               help=_('Timeout in seconds for a single Redfish request.')),
    cfg.StrOpt('default_catalog_url',
               default='https://downloads.dell.com/catalog/Catalog.xml.gz',
               help=_('Firmware catalog used for repository based updates '
                      'when the request does not name a repository.')),
    cfg.IntOpt('task_poll_interval',
               min=0,
               default=10,
               help=_('Number of seconds to wait between polls of a '
                      'Redfish update task.')),
    cfg.IntOpt('task_poll_attempts',
               min=1,
               default=180,
               help=_('Maximum number of polls of a Redfish update task '
                      'before the update is reported as timed out.')),
]


def register_opts(conf):
    conf.register_opts(opts, group='redfish')

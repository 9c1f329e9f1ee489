# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy
# of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from oslo_log import log

import firmgate.conf


_opts = [
    ('DEFAULT', firmgate.conf.default.list_opts()),
    ('credentials', firmgate.conf.credentials.opts),
    ('health_gate', firmgate.conf.health_gate.opts),
    ('ipmi', firmgate.conf.ipmi.opts),
    ('protocol_manager', firmgate.conf.protocol_manager.opts),
    ('racadm', firmgate.conf.racadm.opts),
    ('redfish', firmgate.conf.redfish.opts),
    ('ssh', firmgate.conf.ssh.opts),
    ('vcenter', firmgate.conf.vcenter.opts),
    ('wsman', firmgate.conf.wsman.opts),
]


def list_opts():
    """(group, options) pairs for oslo-config-generator.

    Registered under the 'oslo.config.opts' entry point namespace as
    'firmgate'.
    """
    return _opts


def update_opt_defaults():
    log.set_defaults(
        default_log_levels=[
            'paramiko=WARNING',
            'requests=WARNING',
            'urllib3.connectionpool=WARNING',
            'sushy=INFO',
        ]
    )

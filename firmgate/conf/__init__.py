# Copyright 2016 OpenStack Foundation
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

from firmgate.conf import credentials
from firmgate.conf import default
from firmgate.conf import health_gate
from firmgate.conf import ipmi
from firmgate.conf import protocol_manager
from firmgate.conf import racadm
from firmgate.conf import redfish
from firmgate.conf import ssh
from firmgate.conf import vcenter
from firmgate.conf import wsman

CONF = cfg.CONF

credentials.register_opts(CONF)
default.register_opts(CONF)
health_gate.register_opts(CONF)
ipmi.register_opts(CONF)
protocol_manager.register_opts(CONF)
racadm.register_opts(CONF)
redfish.register_opts(CONF)
ssh.register_opts(CONF)
vcenter.register_opts(CONF)
wsman.register_opts(CONF)

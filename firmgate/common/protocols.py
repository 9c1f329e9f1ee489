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

"""
Constants for management protocols and firmware update modes.
"""

REDFISH = 'redfish'
WSMAN = 'wsman'
RACADM = 'racadm'
IPMI = 'ipmi'
SSH = 'ssh'

PROTOCOLS = (REDFISH, WSMAN, RACADM, IPMI, SSH)

PRIORITIES = {
    REDFISH: 10,
    WSMAN: 20,
    RACADM: 30,
    IPMI: 40,
    SSH: 50,
}
""" Default fallback priority of each protocol, lower is preferred. """

#####################
# Update modes
#####################

SIMPLE_UPDATE = 'simple_update'
""" Push a single image by URI. """

INSTALL_FROM_REPOSITORY = 'install_from_repository'
""" Let the controller pull updates from a catalog repository. """

MULTIPART_UPDATE = 'multipart_update'
""" Upload an image stream with a multipart request. """

OS_DRIVER_UPDATE = 'os_driver_update'
""" Run a vendor update package inside the host operating system. """

CUSTOM_PROTOCOL = 'custom_protocol'
""" Protocol specific upgrade command. """

UPDATE_MODES = (SIMPLE_UPDATE, INSTALL_FROM_REPOSITORY, MULTIPART_UPDATE,
                OS_DRIVER_UPDATE, CUSTOM_PROTOCOL)

#####################
# Apply times
#####################

APPLY_IMMEDIATE = 'Immediate'
APPLY_ON_RESET = 'OnReset'
APPLY_AT_MAINTENANCE_WINDOW = 'AtMaintenanceWindowStart'

APPLY_TIMES = (APPLY_IMMEDIATE, APPLY_ON_RESET, APPLY_AT_MAINTENANCE_WINDOW)

#####################
# Update result statuses
#####################

QUEUED = 'queued'
IN_PROGRESS = 'in_progress'
COMPLETED = 'completed'
FAILED = 'failed'

# Copyright 2024 Red Hat, Inc.
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

"""
Mapping of hardware health states.

Vendor health values reported by the BMC (``OK``, ``Warning``,
``Critical``) are converted to the check level constants below before the
health gate aggregates them.
"""

import enum


class HealthState(enum.Enum):
    """Hardware health states reported by BMC."""

    OK = 'OK'
    """Hardware is functioning normally with no issues detected."""

    WARNING = 'Warning'
    """Hardware has non-critical issues that may require attention."""

    CRITICAL = 'Critical'
    """Hardware has critical issues requiring immediate attention."""


class CheckStatus(enum.Enum):
    """Outcome of a single hardware health check."""

    OK = 'ok'
    WARNING = 'warning'
    CRITICAL = 'critical'
    UNKNOWN = 'unknown'


class OverallHealth(enum.Enum):
    """Aggregate health tier of a health gate evaluation."""

    HEALTHY = 'healthy'
    DEGRADED = 'degraded'
    CRITICAL = 'critical'


class ProtocolStatus(enum.Enum):
    """Reachability of a management protocol."""

    HEALTHY = 'healthy'
    DEGRADED = 'degraded'
    UNREACHABLE = 'unreachable'


class Category(enum.Enum):
    """Hardware subsystems probed by the health gate."""

    POWER = 'power'
    THERMAL = 'thermal'
    STORAGE = 'storage'
    MEMORY = 'memory'
    NETWORK = 'network'
    FIRMWARE = 'firmware'
    SECURITY = 'security'


NON_BLOCKING_CATEGORIES = frozenset([Category.NETWORK, Category.SECURITY])
"""Categories whose checks never block an update."""


def from_vendor(health):
    """Convert a vendor health value into a check status.

    ``None`` is treated as unknown; anything not ``OK`` or ``Warning`` is
    treated as critical.
    """
    if health is None:
        return CheckStatus.UNKNOWN
    if health == HealthState.OK.value:
        return CheckStatus.OK
    if health == HealthState.WARNING.value:
        return CheckStatus.WARNING
    return CheckStatus.CRITICAL

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

"""Hardware health checks and health gate verdicts."""

import dataclasses
import typing

from firmgate.common import health_states


@dataclasses.dataclass
class HardwareHealthCheck:
    category: health_states.Category
    component: str
    status: health_states.CheckStatus
    message: str
    blocking: bool = False
    recommendation: typing.Optional[str] = None
    details: typing.Optional[dict] = None


@dataclasses.dataclass
class HealthSummary:
    total: int = 0
    ok: int = 0
    warning: int = 0
    critical: int = 0
    unknown: int = 0
    blocking: int = 0


@dataclasses.dataclass
class HealthGateResult:
    passed: bool
    overall_health: health_states.OverallHealth
    readiness_score: int
    checks: typing.List[HardwareHealthCheck]
    blocking_issues: typing.List[HardwareHealthCheck]
    warnings: typing.List[HardwareHealthCheck]
    summary: HealthSummary
    recommendations: typing.List[str]
    estimated_duration_minutes: int
    reboot_required: bool = True

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
Dell iDRAC platform intelligence.

Pure helpers classifying controller firmware versions into server
generations, inferring license tiers, deciding network update eligibility
and summarising the controller job queue.
"""

import re

GEN_11 = '11G'
GEN_12 = '12G'
GEN_13 = '13G'
GEN_14 = '14G'
GEN_15 = '15G'
GEN_16 = '16G'
GEN_UNKNOWN = 'UNKNOWN'

GENERATIONS = (GEN_11, GEN_12, GEN_13, GEN_14, GEN_15, GEN_16)

LICENSE_BASIC = 'Basic'
LICENSE_EXPRESS = 'Express'
LICENSE_ENTERPRISE = 'Enterprise'
LICENSE_DATACENTER = 'Datacenter'
LICENSE_UNKNOWN = 'Unknown'

LICENSE_RANK = {
    LICENSE_UNKNOWN: 0,
    LICENSE_BASIC: 1,
    LICENSE_EXPRESS: 2,
    LICENSE_ENTERPRISE: 3,
    LICENSE_DATACENTER: 4,
}

JOB_QUEUE_AVAILABLE = 'available'
JOB_QUEUE_BUSY = 'busy'
JOB_QUEUE_ERROR = 'error'

_FAILED_JOB_STATES = frozenset(['failed'])
_ACTIVE_JOB_STATES = frozenset(['running', 'scheduled'])

_MAJOR_VERSION_RE = re.compile(r'^\s*v?(\d+)')

# iDRAC product generations as reported by the WS-Man product name
_IDRAC_NAME_GENERATIONS = {
    '6': GEN_11,
    '7': GEN_12,
    '8': GEN_13,
    '9': GEN_14,
    '10': GEN_16,
}
_IDRAC_NAME_RE = re.compile(r'idrac\s*(\d+)', re.IGNORECASE)


def detect_generation(firmware_version):
    """Classify a controller firmware version into a server generation.

    :param firmware_version: version string such as ``4.40.00.00``.
    :returns: one of the ``GEN_*`` constants; ``GEN_UNKNOWN`` for missing
        or unparseable input.
    """
    if not isinstance(firmware_version, str):
        return GEN_UNKNOWN
    match = _MAJOR_VERSION_RE.match(firmware_version)
    if not match:
        return GEN_UNKNOWN
    major = int(match.group(1))
    if major <= 2:
        return GEN_11
    if major >= 7:
        return GEN_16
    return {3: GEN_12, 4: GEN_13, 5: GEN_14, 6: GEN_15}[major]


def detect_generation_from_product(product):
    """Classify a generation from an ``iDRAC<N>`` style product name."""
    match = _IDRAC_NAME_RE.search(product or '')
    if not match:
        return GEN_UNKNOWN
    return _IDRAC_NAME_GENERATIONS.get(match.group(1), GEN_UNKNOWN)


def infer_license_level(license_description=None, feature_count=0):
    """Infer the controller license tier.

    An explicit license description wins. Otherwise the tier is
    approximated from the number of enabled licensed features.

    :param license_description: free form license string, e.g.
        ``iDRAC9 Enterprise License``.
    :param feature_count: number of enabled licensed features.
    :returns: one of the ``LICENSE_*`` constants.
    """
    if license_description:
        lowered = license_description.lower()
        for level in (LICENSE_DATACENTER, LICENSE_ENTERPRISE,
                      LICENSE_EXPRESS, LICENSE_BASIC):
            if level.lower() in lowered:
                return level

    if feature_count > 10:
        return LICENSE_ENTERPRISE
    if feature_count > 5:
        return LICENSE_EXPRESS
    if feature_count > 0:
        return LICENSE_BASIC
    return LICENSE_UNKNOWN


def network_update_supported(generation, license_level):
    """Decide whether firmware can be pulled over the network.

    11G is never eligible. 12G and 13G need at least an Express license.
    15G and 16G are always eligible. Anything else needs Enterprise or
    Datacenter.
    """
    rank = LICENSE_RANK.get(license_level, 0)
    if generation == GEN_11:
        return False
    if generation in (GEN_12, GEN_13):
        return rank >= LICENSE_RANK[LICENSE_EXPRESS]
    if generation in (GEN_15, GEN_16):
        return True
    return rank >= LICENSE_RANK[LICENSE_ENTERPRISE]


def analyze_job_queue(job_states):
    """Summarise controller job states.

    :param job_states: iterable of job status strings.
    :returns: ``error`` if any job failed, ``busy`` if any job is running
        or scheduled, ``available`` otherwise.
    """
    states = {(state or '').lower() for state in job_states}
    if states & _FAILED_JOB_STATES:
        return JOB_QUEUE_ERROR
    if states & _ACTIVE_JOB_STATES:
        return JOB_QUEUE_BUSY
    return JOB_QUEUE_AVAILABLE


def is_legacy_generation(generation):
    return generation in (GEN_11, GEN_12)

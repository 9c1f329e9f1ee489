# Copyright (c) 2012 NTT DOCOMO, INC.
# Copyright 2010 OpenStack Foundation
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
Constants for the firmware update phases.

A run walks PRECHECK -> ENTER_MAINTENANCE -> APPLY -> POSTCHECK ->
EXIT_MAINTENANCE -> DONE. Every non-terminal phase may exit to FAILED, and a
FAILED run may be retried from PRECHECK.
"""

from firmgate.common import fsm

#####################
# Update phases
#####################

PRECHECK = 'precheck'
""" Pre-update health gate. """

ENTER_MAINTENANCE = 'enter maintenance'
""" The host is being placed in cluster maintenance mode. """

APPLY = 'apply'
""" Firmware is being submitted and tracked to completion. """

POSTCHECK = 'postcheck'
""" Post-update health gate. """

EXIT_MAINTENANCE = 'exit maintenance'
""" The host is being released from cluster maintenance mode. """

DONE = 'done'
""" The run completed successfully. """

FAILED = 'failed'
""" The run stopped on an error. """

PHASES = (PRECHECK, ENTER_MAINTENANCE, APPLY, POSTCHECK, EXIT_MAINTENANCE,
          DONE, FAILED)

#####################
# Events
#####################

GATE_PASSED = 'gate passed'
MAINTENANCE_ENTERED = 'maintenance entered'
APPLIED = 'applied'
VERIFIED = 'verified'
MAINTENANCE_EXITED = 'maintenance exited'
FAIL = 'fail'
RETRY = 'retry'


def build_machine():
    """Return a new, uninitialized update phase state machine."""
    machine = fsm.FSM()

    for phase in (PRECHECK, ENTER_MAINTENANCE, APPLY, POSTCHECK,
                  EXIT_MAINTENANCE, FAILED):
        machine.add_state(phase)
    machine.add_state(DONE, terminal=True)

    machine.add_transition(PRECHECK, ENTER_MAINTENANCE, GATE_PASSED)
    machine.add_transition(ENTER_MAINTENANCE, APPLY, MAINTENANCE_ENTERED)
    machine.add_transition(APPLY, POSTCHECK, APPLIED)
    machine.add_transition(POSTCHECK, EXIT_MAINTENANCE, VERIFIED)
    machine.add_transition(EXIT_MAINTENANCE, DONE, MAINTENANCE_EXITED)

    for phase in (PRECHECK, ENTER_MAINTENANCE, APPLY, POSTCHECK,
                  EXIT_MAINTENANCE):
        machine.add_transition(phase, FAILED, FAIL)

    machine.add_transition(FAILED, PRECHECK, RETRY)
    return machine

#    Copyright (C) 2014 Yahoo! Inc. All Rights Reserved.
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

"""Finite state machine backing the firmware update phases.

automaton raises its own exception types; callers in firmgate only ever
see :class:`firmgate.common.exception.InvalidState` and
:class:`firmgate.common.exception.Duplicate`.
"""

import functools

from automaton import exceptions as automaton_exceptions
from automaton import machines

from firmgate.common import exception as excp
from firmgate.common.i18n import _

_STATE_ERRORS = (automaton_exceptions.InvalidState,
                 automaton_exceptions.NotInitialized,
                 automaton_exceptions.FrozenMachine,
                 automaton_exceptions.NotFound)


def _reraise_as_firmgate(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except _STATE_ERRORS as e:
            raise excp.InvalidState(str(e))
        except automaton_exceptions.Duplicate as e:
            raise excp.Duplicate(str(e))

    return wrapper


class FSM(machines.FiniteMachine):
    """automaton FiniteMachine raising firmgate exceptions."""

    add_transition = _reraise_as_firmgate(
        machines.FiniteMachine.add_transition)
    initialize = _reraise_as_firmgate(machines.FiniteMachine.initialize)
    process_event = _reraise_as_firmgate(
        machines.FiniteMachine.process_event)

    @_reraise_as_firmgate
    def add_state(self, state, on_enter=None, on_exit=None, terminal=None):
        super(FSM, self).add_state(state, terminal=terminal,
                                   on_enter=on_enter, on_exit=on_exit)

    def is_terminal(self, state):
        """Whether no transition may ever leave ``state``.

        :raises: InvalidState for a state the machine does not know.
        """
        if state not in self._states:
            raise excp.InvalidState(_("Unknown phase '%s'") % state)
        return self._states[state]['terminal']

# Copyright 2010 United States Government as represented by the
# Administrator of the National Aeronautics and Space Administration.
# Copyright 2011 Justin Santa Barbara
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

"""Utilities and helper functions."""

import os

from oslo_concurrency import processutils
from oslo_log import log as logging
from oslo_utils import excutils
import tenacity

from firmgate.common import exception

LOG = logging.getLogger(__name__)


def execute(*cmd, use_standard_locale=False, log_stdout=True, **kwargs):
    """Convenience wrapper around oslo's execute() method.

    Executes and logs results from a system command. See docs for
    oslo_concurrency.processutils.execute for usage.

    :param cmd: positional arguments to pass to processutils.execute()
    :param use_standard_locale: Defaults to False. If set to True,
                                execute command with standard locale
                                added to environment variables.
    :param log_stdout: Defaults to True. If set to True, logs the output.
    :param kwargs: keyword arguments to pass to processutils.execute()
    :returns: (stdout, stderr) from process execution
    :raises: UnknownArgumentError on receiving unknown arguments
    :raises: ProcessExecutionError
    :raises: OSError
    """
    if use_standard_locale:
        env = kwargs.pop('env_variables', os.environ.copy())
        env['LC_ALL'] = 'C'
        kwargs['env_variables'] = env

    def _log(stdout, stderr):
        if log_stdout:
            LOG.debug('Command stdout is: "%s"', stdout)
        LOG.debug('Command stderr is: "%s"', stderr)

    try:
        result = processutils.execute(*cmd, **kwargs)
    except FileNotFoundError:
        with excutils.save_and_reraise_exception():
            LOG.debug('Command not found: "%s"', cmd[0])
    except processutils.ProcessExecutionError as exc:
        with excutils.save_and_reraise_exception():
            _log(exc.stdout, exc.stderr)
    else:
        _log(result[0], result[1])
        return result


def check_cancelled(cancel_event, operation, host):
    """Raise OperationCancelled if the cancellation event is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise exception.OperationCancelled(operation=operation, host=host)


def poll_until(fetch, is_done, attempts, interval, task=None, host=None,
               cancel_event=None, retry_on=None):
    """Call ``fetch`` until ``is_done`` accepts its result.

    Polling happens at a fixed interval and is bounded by ``attempts``.
    Setting ``cancel_event`` wakes the poller up and stops it before the
    next attempt.

    :param fetch: callable returning the current state.
    :param is_done: predicate over the value returned by ``fetch``.
    :param attempts: maximum number of calls to ``fetch``.
    :param interval: seconds to wait between calls.
    :param task: task locator, used in error messages.
    :param host: target host, used in error messages.
    :param cancel_event: optional ``threading.Event``.
    :param retry_on: optional predicate over exceptions raised by ``fetch``;
        matching exceptions count as a failed attempt instead of aborting.
    :returns: the first value accepted by ``is_done``.
    :raises: TaskPollTimeout when attempts are exhausted.
    :raises: OperationCancelled when ``cancel_event`` gets set.
    """
    operation = 'poll %s' % task
    check_cancelled(cancel_event, operation, host)

    stop = tenacity.stop_after_attempt(attempts)
    sleep = tenacity.nap.sleep
    if cancel_event is not None:
        stop = stop | tenacity.stop_when_event_set(cancel_event)
        sleep = tenacity.nap.sleep_using_event(cancel_event)

    retry = tenacity.retry_if_result(lambda result: not is_done(result))
    if retry_on is not None:
        retry = retry | tenacity.retry_if_exception(retry_on)

    retrying = tenacity.Retrying(stop=stop, retry=retry,
                                 wait=tenacity.wait_fixed(interval),
                                 sleep=sleep)
    try:
        return retrying(fetch)
    except tenacity.RetryError as e:
        # Includes a last attempt that raised a retryable error.
        check_cancelled(cancel_event, operation, host)
        raise exception.TaskPollTimeout(task=task, host=host,
                                        attempts=attempts) from e
    except Exception:
        with excutils.save_and_reraise_exception() as ctxt:
            if cancel_event is not None and cancel_event.is_set():
                ctxt.reraise = False
        raise exception.OperationCancelled(operation=operation, host=host)

# Copyright 2010 United States Government as represented by the
# Administrator of the National Aeronautics and Space Administration.
# All Rights Reserved.
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software

"""Shared unit test scaffolding for firmgate.

Every test case gets an isolated configuration with zero poll and retry
delays. Shelling out to real binaries is refused unless a test opts in.
"""

import os
import subprocess

import fixtures
from oslo_concurrency import processutils
from oslo_config import fixture as config_fixture
from oslo_log import log as logging
from oslotest import base as oslo_test_base

from firmgate.common import config as firmgate_config
from firmgate.common import utils
from firmgate.conf import CONF

logging.register_options(CONF)
logging.setup(CONF, 'firmgate')

TEST_TIMEOUT = int(os.environ.get('FIRMGATE_TEST_TIMEOUT', 60))

_NO_DELAY_OPTS = (
    ('redfish', {'task_poll_interval': 0}),
    ('wsman', {'job_poll_interval': 0}),
    ('racadm', {'job_poll_interval': 0}),
    ('vcenter', {'task_poll_interval': 0}),
    ('protocol_manager', {'retry_base_delay': 0, 'retry_max_delay': 0,
                          'retry_jitter': 0}),
)


class TestingException(Exception):
    pass


def refuse_execution(*args, **kwargs):
    raise AssertionError(
        'Unit tests must not run external commands, got %r' % (args,))


class RefusedPopen(object):
    """Stand-in for subprocess.Popen that refuses to start anything.

    The methods exist so autospec'd mocks of it still resolve.
    """

    def __init__(self, *args, **kwargs):
        refuse_execution(*args, **kwargs)

    def communicate(self, input=None):
        pass

    def poll(self):
        pass

    def wait(self, timeout=None):
        pass

    def kill(self):
        pass


class TestCase(oslo_test_base.BaseTestCase):
    """Base class for every firmgate unit test."""

    # Set to False in a subclass that patches utils.execute itself.
    block_execute = True

    def setUp(self):
        super(TestCase, self).setUp()
        self.cfg_fixture = self.useFixture(config_fixture.Config(CONF))
        self.config(use_stderr=False)
        self.cfg_fixture.set_default('debug', True)
        for group, values in _NO_DELAY_OPTS:
            self.config(group=group, **values)
        firmgate_config.parse_args([], default_config_files=[])

        self.useFixture(fixtures.EnvironmentVariable('http_proxy'))
        self.useFixture(fixtures.EnvironmentVariable('https_proxy'))
        self.useFixture(fixtures.Timeout(TEST_TIMEOUT, gentle=False))

        if self.block_execute:
            for target, name in ((processutils, 'execute'),
                                 (utils, 'execute'),
                                 (subprocess, 'call'),
                                 (subprocess, 'check_call'),
                                 (subprocess, 'check_output')):
                self.patch(target, name, refuse_execution)
            self.patch(subprocess, 'Popen', RefusedPopen)

    def config(self, **kw):
        """Override configuration options for the current test."""
        self.cfg_fixture.config(**kw)

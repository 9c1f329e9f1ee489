#!/usr/bin/env python
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or
# implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import setuptools

project = 'firmgate'

setuptools.setup(
    name=project,
    version='0.1.0',
    description='Out-of-band firmware update orchestration for Dell servers',
    classifiers=[
        'Intended Audience :: Information Technology',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        ],
    python_requires='>=3.8',
    packages=setuptools.find_packages(include=['firmgate', 'firmgate.*']),
    include_package_data=True,
    install_requires=[
        'automaton>=1.9.0',
        'futurist>=1.2.0',
        'jsonschema>=3.2.0',
        'netaddr>=0.7.18',
        'oslo.concurrency>=4.2.0',
        'oslo.config>=6.8.0',
        'oslo.i18n>=3.15.3',
        'oslo.log>=4.3.0',
        'oslo.serialization>=2.25.0',
        'oslo.utils>=4.5.0',
        'paramiko>=2.7.1',
        'requests>=2.18.0',
        'sushy>=3.4.0',
        'tenacity>=6.3.0',
    ],
    extras_require={
        'test': [
            'fixtures>=3.0.0',
            'oslotest>=3.2.0',
            'pytest>=6.0.0',
            'stestr>=2.0.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'firmgate-fwupdate = firmgate.cmd.fwupdate:main',
        ],
        'oslo.config.opts': [
            'firmgate = firmgate.conf.opts:list_opts',
        ],
    },
)

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

"""Job progress sink used by the update flow."""

import abc
import copy
import threading
import uuid

from oslo_utils import timeutils

from firmgate.common import exception


class JobStore(object, metaclass=abc.ABCMeta):
    """Write-mostly record of update jobs and their phases."""

    @abc.abstractmethod
    def create(self, host, **values):
        """Create a job record and return its id."""

    @abc.abstractmethod
    def update(self, job_id, **values):
        """Merge values into an existing job record."""

    @abc.abstractmethod
    def add_event(self, job_id, phase, message):
        """Append a progress message to a job."""

    @abc.abstractmethod
    def get(self, job_id):
        """Return a copy of a job record."""


class InMemoryJobStore(JobStore):

    def __init__(self):
        self._jobs = {}
        self._lock = threading.Lock()

    def create(self, host, **values):
        job_id = values.pop('id', None) or str(uuid.uuid4())
        now = timeutils.utcnow()
        with self._lock:
            if job_id in self._jobs:
                raise exception.Duplicate()
            record = {'id': job_id, 'host': host, 'created_at': now,
                      'updated_at': now, 'events': []}
            record.update(values)
            self._jobs[job_id] = record
        return job_id

    def _get(self, job_id):
        try:
            return self._jobs[job_id]
        except KeyError:
            raise exception.InvalidParameterValue(
                err='Unknown job %s' % job_id)

    def update(self, job_id, **values):
        with self._lock:
            record = self._get(job_id)
            record.update(values)
            record['updated_at'] = timeutils.utcnow()

    def add_event(self, job_id, phase, message):
        with self._lock:
            record = self._get(job_id)
            record['events'].append({'phase': phase, 'message': message,
                                     'at': timeutils.utcnow()})
            record['updated_at'] = timeutils.utcnow()

    def get(self, job_id):
        with self._lock:
            return copy.deepcopy(self._get(job_id))

    def list(self):
        with self._lock:
            return [copy.deepcopy(job) for job in self._jobs.values()]

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

"""Helpers shared by the firmgate data model."""

import dataclasses
import datetime
import enum


def _primitive(value):
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(_primitive(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_primitive(v) for v in value]
    if isinstance(value, dict):
        return {k: _primitive(v) for k, v in value.items()}
    if dataclasses.is_dataclass(value):
        return as_dict(value)
    return value


def as_dict(obj):
    """Convert a data model object into JSON serializable primitives.

    Fields declared with repr=False (secrets and open streams) are left
    out.
    """
    return {f.name: _primitive(getattr(obj, f.name))
            for f in dataclasses.fields(obj) if f.repr}

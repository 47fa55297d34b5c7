# Copyright 2022 Cisco Systems, Inc. and/or its affiliates.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import decimal
import enum
import math
import re
from typing import Optional, Union

__all__ = [
    "ControllerKind",
    "PodPhase",
    "ResourceRequirement",
    "bytes_from_quantity",
    "millicores_from_quantity",
    "parse_quantity",
]


class ControllerKind(str, enum.Enum):
    """The workload controllers that own the pods of an automated container."""

    deployment = "Deployment"
    stateful_set = "StatefulSet"
    daemon_set = "DaemonSet"
    job = "Job"
    cron_job = "CronJob"

    @classmethod
    def from_str(cls, identifier: str) -> Optional["ControllerKind"]:
        """
        Returns a `ControllerKind` for the given identifier compared case-insensitively
        (e.g., "deployment" or "StatefulSet"), or None when the kind is not supported.
        """
        for kind in cls.__members__.values():
            if kind.value.lower() == identifier.strip().lower():
                return kind
        return None

    def __str__(self) -> str:
        return self.value


class PodPhase(str, enum.Enum):
    pending = "Pending"
    running = "Running"
    succeeded = "Succeeded"
    failed = "Failed"
    unknown = "Unknown"

    @classmethod
    def from_str(cls, identifier: Optional[str]) -> "PodPhase":
        for phase in cls.__members__.values():
            if phase.value == identifier:
                return phase
        return cls.unknown


class ResourceRequirement(enum.Enum):
    """
    The ResourceRequirement enumeration determines how resource values are submitted to the
    Kubernetes scheduler. Requests establish the lower bounds of the CPU and memory necessary
    for a container to execute while Limits define the upper bounds.
    """

    request = "request"
    limit = "limit"

    @property
    def resources_key(self) -> str:
        """
        Return a string value for accessing resource requirements within a Kubernetes Container representation.
        """
        if self == ResourceRequirement.request:
            return "requests"
        elif self == ResourceRequirement.limit:
            return "limits"
        else:
            raise NotImplementedError(
                f'missing resources_key implementation for resource requirement "{self}"'
            )


_BINARY_SUFFIXES = {
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
    "Pi": 2**50,
    "Ei": 2**60,
}
_DECIMAL_SUFFIXES = {
    "n": decimal.Decimal("1e-9"),
    "u": decimal.Decimal("1e-6"),
    "m": decimal.Decimal("1e-3"),
    "": decimal.Decimal(1),
    "k": decimal.Decimal("1e3"),
    "M": decimal.Decimal("1e6"),
    "G": decimal.Decimal("1e9"),
    "T": decimal.Decimal("1e12"),
    "P": decimal.Decimal("1e15"),
    "E": decimal.Decimal("1e18"),
}
_QUANTITY_PATTERN = re.compile(
    r"^(?P<number>[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?)(?P<suffix>[a-zA-Z]*)$"
)


def parse_quantity(quantity: Union[str, int, float, decimal.Decimal]) -> decimal.Decimal:
    """
    Parses a Kubernetes resource quantity (e.g., "250m", "1.5", "512Mi", "1e3", "2G")
    into a Decimal in base units (cores for CPU, bytes for memory).

    Raises:
        ValueError: Raised if the input cannot be parsed.
    """
    if isinstance(quantity, decimal.Decimal):
        return quantity
    elif isinstance(quantity, (int, float)):
        return decimal.Decimal(str(quantity))

    match = _QUANTITY_PATTERN.match(str(quantity).strip())
    if not match:
        raise ValueError(f"could not parse quantity {quantity!r}")

    number = decimal.Decimal(match.group("number"))
    suffix = match.group("suffix")
    if suffix in _BINARY_SUFFIXES:
        return number * _BINARY_SUFFIXES[suffix]
    elif suffix in _DECIMAL_SUFFIXES:
        return number * _DECIMAL_SUFFIXES[suffix]

    raise ValueError(f"unknown suffix '{suffix}' in quantity {quantity!r}")


def millicores_from_quantity(quantity: Union[str, int, float, None]) -> int:
    """Return a CPU quantity in millicores, rounding up fractional millicores."""
    if quantity is None:
        return 0
    return math.ceil(parse_quantity(quantity) * 1000)


def bytes_from_quantity(quantity: Union[str, int, float, None]) -> int:
    """Return a memory quantity in bytes, rounding up fractional bytes."""
    if quantity is None:
        return 0
    return math.ceil(parse_quantity(quantity))

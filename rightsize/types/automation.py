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

"""Models for automation commands, container resources and the feedback reported back
to the gateway.

CPU values are expressed in millicores and memory values in mebibytes unless noted
otherwise. An absent (None) value is meaningful: it leaves the corresponding
requirement of the container untouched.
"""
from __future__ import annotations

import datetime
import enum
from typing import Any, Optional

import pydantic
from pydantic.alias_generators import to_camel

from rightsize.types.core import BaseModel

__all__ = [
    "AutomationCommand",
    "AutomationFeedback",
    "AutomationResponse",
    "AutomationStatus",
    "ContainerResources",
    "Package",
    "PacketKind",
    "RequestLimit",
    "ResourceOverride",
]


class WireModel(BaseModel):
    """Base class for models exchanged with the gateway using camelCase field names."""

    model_config = pydantic.ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )


class RequestLimit(WireModel):
    """CPU (millicores) and memory (mebibytes) values of either requests or limits."""

    cpu: Optional[int] = None
    memory: Optional[int] = None


class ResourceOverride(WireModel):
    requests: Optional[RequestLimit] = None
    limits: Optional[RequestLimit] = None


class ContainerResources(WireModel):
    """The resource requirements of a single container."""

    name: str
    requests: RequestLimit = pydantic.Field(default_factory=RequestLimit)
    limits: RequestLimit = pydantic.Field(default_factory=RequestLimit)

    def __str__(self) -> str:
        return (
            f"{self.name}(requests=cpu:{self.requests.cpu}m,memory:{self.requests.memory}Mi "
            f"limits=cpu:{self.limits.cpu}m,memory:{self.limits.memory}Mi)"
        )


class AutomationCommand(WireModel):
    """A remote request to change the CPU/memory requests or limits of a container.

    Commands are immutable once received. The identifier is unique per command and
    reused when the gateway redelivers it.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    id: str = pydantic.Field(min_length=1)
    namespace_name: str
    controller_kind: str
    controller_name: str
    container_name: str
    container_resources: ResourceOverride = pydantic.Field(
        default_factory=ResourceOverride
    )

    def normalized(self) -> AutomationCommand:
        """Return a copy of the command with memory overrides converted from kibibytes to mebibytes."""

        def _convert(values: Optional[RequestLimit]) -> Optional[RequestLimit]:
            if values is None or values.memory is None:
                return values
            return values.model_copy(update={"memory": values.memory // 1024})

        resources = ResourceOverride(
            requests=_convert(self.container_resources.requests),
            limits=_convert(self.container_resources.limits),
        )
        return self.model_copy(update={"container_resources": resources})

    @property
    def target(self) -> str:
        """A human readable description of the targeted container."""
        return (
            f"{self.namespace_name}/{self.controller_kind}/"
            f"{self.controller_name}/{self.container_name}"
        )


class AutomationStatus(str, enum.Enum):
    executed = "executed"
    failed = "failed"

    def __str__(self) -> str:
        return self.value


class AutomationFeedback(WireModel):
    """The outcome of an automation reported back to the gateway."""

    id: str
    namespace_name: str
    controller_kind: str
    controller_name: str
    container_name: str
    status: AutomationStatus
    message: str

    @classmethod
    def for_command(
        cls, command: AutomationCommand, status: AutomationStatus, message: str
    ) -> AutomationFeedback:
        return cls(
            id=command.id,
            namespace_name=command.namespace_name,
            controller_kind=command.controller_kind,
            controller_name=command.controller_name,
            container_name=command.container_name,
            status=status,
            message=message,
        )

    @classmethod
    def failed(cls, command: AutomationCommand, message: str) -> AutomationFeedback:
        """Return a failure feedback for the given command."""
        return cls.for_command(command, AutomationStatus.failed, message)


class AutomationResponse(WireModel):
    """The synchronous reply of the automation listener.

    An empty response acknowledges the command, including duplicates that were
    discarded while the original is still queued or executing.
    """

    id: Optional[str] = None
    error: Optional[str] = None


class PacketKind(str, enum.Enum):
    automation_feedback = "automation/feedback"

    def __str__(self) -> str:
        return self.value


class Package(WireModel):
    """A transport envelope carrying a payload and its delivery QoS attributes."""

    kind: PacketKind
    expiry_time: datetime.datetime
    expiry_count: int = pydantic.Field(0, ge=0)
    priority: int
    retries: int = pydantic.Field(ge=0)
    data: Any

    @pydantic.field_validator("expiry_time")
    @classmethod
    def _assume_utc(cls, value: datetime.datetime) -> datetime.datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value

    @property
    def expired(self) -> bool:
        return self.expiry_time <= datetime.datetime.now(datetime.timezone.utc)

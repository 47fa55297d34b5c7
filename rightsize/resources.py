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

"""Computation of the resources applied by an automation.

The original resources of a container are read from its live spec and merged with
the partial override carried by the automation command. Values absent from the
override are carried over from the original, so fields the command does not name
are never modified.
"""
from __future__ import annotations

from typing import Optional

from kubernetes_asyncio.client import V1Container, V1ResourceRequirements

from rightsize.types import (
    ContainerResources,
    RequestLimit,
    ResourceOverride,
    ResourceRequirement,
    bytes_from_quantity,
    millicores_from_quantity,
)

__all__ = (
    "merge",
    "original_resources",
)

MEBIBYTE = 1024 * 1024


def _requirement_values(
    container: V1Container, requirement: ResourceRequirement
) -> RequestLimit:
    resources: V1ResourceRequirements = (
        getattr(container, "resources", None) or V1ResourceRequirements()
    )
    values = getattr(resources, requirement.resources_key, None) or {}

    # NOTE: Zero quantities are indistinguishable from unset ones in the cluster model
    cpu = millicores_from_quantity(values.get("cpu"))
    memory = bytes_from_quantity(values.get("memory")) // MEBIBYTE
    return RequestLimit(cpu=cpu or None, memory=memory or None)


def original_resources(container: V1Container) -> ContainerResources:
    """Return the current requests and limits of a container.

    CPU is expressed in millicores (rounded up) and memory in mebibytes (rounded down).

    Raises:
        ValueError: Raised if a resource quantity of the container cannot be parsed.
    """
    return ContainerResources(
        name=container.name,
        requests=_requirement_values(container, ResourceRequirement.request),
        limits=_requirement_values(container, ResourceRequirement.limit),
    )


def _merge_values(
    original: RequestLimit, override: Optional[RequestLimit]
) -> RequestLimit:
    if override is None:
        return original.model_copy()

    return RequestLimit(
        cpu=override.cpu if override.cpu is not None else original.cpu,
        memory=override.memory if override.memory is not None else original.memory,
    )


def merge(original: ContainerResources, override: ResourceOverride) -> ContainerResources:
    """Merge a partial override into the original resources of a container.

    Both `requests` and `limits` are always present on the result and the container
    name is taken from the original.
    """
    return ContainerResources(
        name=original.name,
        requests=_merge_values(original.requests, override.requests),
        limits=_merge_values(original.limits, override.limits),
    )

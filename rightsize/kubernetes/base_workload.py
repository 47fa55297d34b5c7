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

import abc
from typing import Any, AsyncContextManager

from rightsize.logging import logger
from rightsize.types import ContainerResources
from .container import ContainerHelper
from .util import Workload

STRATEGIC_MERGE_PATCH = "application/strategic-merge-patch+json"


class BaseKubernetesWorkloadHelper(abc.ABC):
    """Reads and patches a kind of workload controller.

    Subclasses bind the API group of the controller kind and the path of the pod
    template within its spec.
    """

    kind: str
    # Path of the pod template spec within the workload object (camelCase keys)
    template_path: tuple[str, ...] = ("spec", "template")

    @classmethod
    @abc.abstractmethod
    def api_client(cls) -> AsyncContextManager[Any]:
        ...

    @classmethod
    @abc.abstractmethod
    async def read(cls, name: str, namespace: str) -> Workload:
        ...

    @classmethod
    @abc.abstractmethod
    async def _patch(cls, api: Any, name: str, namespace: str, body: dict) -> Workload:
        ...

    @classmethod
    def resources_patch(
        cls, resources: ContainerResources, *, replace: bool = False
    ) -> dict[str, Any]:
        """Return a strategic merge patch setting the resources of one pod template container."""
        body: dict[str, Any] = {
            "spec": {
                "containers": [ContainerHelper.resources_patch(resources, replace=replace)]
            }
        }
        for key in reversed(cls.template_path):
            body = {key: body}
        return body

    @classmethod
    async def patch_resources(
        cls,
        name: str,
        namespace: str,
        resources: ContainerResources,
        *,
        replace: bool = False,
    ) -> Workload:
        body = cls.resources_patch(resources, replace=replace)
        logger.debug(
            f'patching resources of container "{resources.name}" of {cls.kind.lower()} "{name}" in namespace "{namespace}"'
        )
        logger.trace(f"patch body: {body}")
        async with cls.api_client() as api:
            return await cls._patch(api, name, namespace, body)

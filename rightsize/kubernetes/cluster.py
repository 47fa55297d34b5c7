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

"""Cluster collaborators backed by the Kubernetes API."""
from __future__ import annotations

import asyncio
from typing import Optional

from kubernetes_asyncio.client import (
    ApiException,
    V1Container,
    V1CronJob,
    V1DaemonSet,
    V1Pod,
    V1ReplicaSet,
    V1StatefulSet,
)

from rightsize.configuration import KubernetesConfiguration
from rightsize.errors import ContainerNotFoundError
from rightsize.logging import Mixin
from rightsize.types import ContainerResources, ControllerKind
from .base_workload import BaseKubernetesWorkloadHelper
from .daemonset import DaemonSetHelper
from .deployment import DeploymentHelper
from .job import CronJobHelper, JobHelper
from .pod import PodHelper, ReplicasetHelper
from .statefulset import StatefulSetHelper
from .util import find_container

WORKLOAD_HELPERS: dict[ControllerKind, type[BaseKubernetesWorkloadHelper]] = {
    ControllerKind.deployment: DeploymentHelper,
    ControllerKind.stateful_set: StatefulSetHelper,
    ControllerKind.daemon_set: DaemonSetHelper,
    ControllerKind.job: JobHelper,
    ControllerKind.cron_job: CronJobHelper,
}


class KubernetesCluster(Mixin):
    """Discovers, patches and observes workloads through the Kubernetes API.

    Every request is bounded by the configured timeout. The Kubernetes client must be
    configured (see `connect`) before any request is made.
    """

    def __init__(self, config: Optional[KubernetesConfiguration] = None) -> None:
        self.config = config or KubernetesConfiguration()

    async def connect(self) -> None:
        await self.config.load_kubeconfig()

    async def find_container(
        self, namespace: str, kind: str, name: str, container: str
    ) -> V1Container:
        controller_kind = ControllerKind.from_str(kind)
        if controller_kind is None:
            raise ContainerNotFoundError(f"unsupported controller kind {kind}")

        helper = WORKLOAD_HELPERS[controller_kind]
        try:
            async with asyncio.timeout(self.config.timeout.total_seconds()):
                workload = await helper.read(name, namespace)
        except ApiException as error:
            if error.status == 404:
                raise ContainerNotFoundError(
                    f'{controller_kind} "{name}" not found in namespace "{namespace}"'
                ) from error
            raise

        if found := find_container(workload, container):
            return found

        raise ContainerNotFoundError(
            f'container "{container}" not found in {controller_kind} "{name}" in namespace "{namespace}"'
        )

    async def set_resources(
        self,
        kind: str,
        name: str,
        namespace: str,
        resources: ContainerResources,
        *,
        replace: bool = False,
    ) -> tuple[bool, Optional[str]]:
        controller_kind = ControllerKind.from_str(kind)
        if controller_kind is None:
            return True, f"unsupported controller kind {kind}"
        elif controller_kind == ControllerKind.job:
            return True, "resources of a Job cannot be changed once created"

        helper = WORKLOAD_HELPERS[controller_kind]
        try:
            async with asyncio.timeout(self.config.timeout.total_seconds()):
                await helper.patch_resources(name, namespace, resources, replace=replace)
        except ApiException as error:
            self.logger.debug(f"patch of {controller_kind} '{name}' rejected: {error}")
            return False, f"failed to update {controller_kind} {name}: {error.status} {error.reason}"

        self.logger.info(
            f"updated {controller_kind} '{name}' in namespace '{namespace}' with {resources}"
        )
        return False, None

    async def get_pods(self, namespace: str) -> list[V1Pod]:
        async with asyncio.timeout(self.config.timeout.total_seconds()):
            return await PodHelper.list_pods(namespace)

    async def get_replica_sets(self, namespace: str) -> list[V1ReplicaSet]:
        async with asyncio.timeout(self.config.timeout.total_seconds()):
            return await ReplicasetHelper.list_replicasets(namespace)

    async def get_stateful_set(self, namespace: str, name: str) -> V1StatefulSet:
        async with asyncio.timeout(self.config.timeout.total_seconds()):
            return await StatefulSetHelper.read(name, namespace)

    async def get_daemon_set(self, namespace: str, name: str) -> V1DaemonSet:
        async with asyncio.timeout(self.config.timeout.total_seconds()):
            return await DaemonSetHelper.read(name, namespace)

    async def get_cron_job(self, namespace: str, name: str) -> V1CronJob:
        async with asyncio.timeout(self.config.timeout.total_seconds()):
            return await CronJobHelper.read(name, namespace)

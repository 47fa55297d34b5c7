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

"""Interfaces of the collaborators the executor depends on.

The executor never talks to the cluster or the network directly. Discovery, cluster
mutation and cluster queries are provided by `rightsize.kubernetes.KubernetesCluster`
in production and by fakes under test. Feedback is handed to a `Transport`.
"""
from __future__ import annotations

from typing import Any, Awaitable, Optional, Protocol, Union, runtime_checkable

import kubernetes_asyncio.client

from rightsize.types import ContainerResources, Package

__all__ = (
    "ClusterMutation",
    "ClusterQuery",
    "Discovery",
    "Transport",
)


@runtime_checkable
class Discovery(Protocol):
    async def find_container(
        self, namespace: str, kind: str, name: str, container: str
    ) -> kubernetes_asyncio.client.V1Container:
        """Return the container spec of a controller's pod template.

        Raises `rightsize.errors.ContainerNotFoundError` when the controller or the
        container does not exist.
        """
        ...


@runtime_checkable
class ClusterMutation(Protocol):
    async def set_resources(
        self,
        kind: str,
        name: str,
        namespace: str,
        resources: ContainerResources,
        *,
        replace: bool = False,
    ) -> tuple[bool, Optional[str]]:
        """Apply the resources to the named container of a controller.

        Values that are not set are kept as they are in the cluster, or removed when
        `replace` is True.

        Returns a `(skipped, message)` tuple. A skipped change carries the reason in
        `message`, a failed one carries the error. Hard errors may also be raised.
        """
        ...


@runtime_checkable
class ClusterQuery(Protocol):
    async def get_pods(self, namespace: str) -> list[kubernetes_asyncio.client.V1Pod]:
        ...

    async def get_replica_sets(
        self, namespace: str
    ) -> list[kubernetes_asyncio.client.V1ReplicaSet]:
        ...

    async def get_stateful_set(
        self, namespace: str, name: str
    ) -> kubernetes_asyncio.client.V1StatefulSet:
        ...

    async def get_daemon_set(
        self, namespace: str, name: str
    ) -> kubernetes_asyncio.client.V1DaemonSet:
        ...

    async def get_cron_job(
        self, namespace: str, name: str
    ) -> kubernetes_asyncio.client.V1CronJob:
        ...


@runtime_checkable
class Transport(Protocol):
    def pipe(self, package: Package) -> Union[Any, Awaitable[Any]]:
        """Queue a package for delivery. Coroutine functions are awaited."""
        ...

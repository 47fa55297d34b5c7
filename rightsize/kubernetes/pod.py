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

import contextlib
from typing import AsyncIterator

from kubernetes_asyncio.client import (
    ApiClient,
    AppsV1Api,
    CoreV1Api,
    V1Pod,
    V1PodList,
    V1ReplicaSet,
    V1ReplicaSetList,
)

from rightsize.logging import logger


class PodHelper:
    @classmethod
    @contextlib.asynccontextmanager
    async def api_client(cls) -> AsyncIterator[CoreV1Api]:
        async with ApiClient() as api:
            yield CoreV1Api(api)

    @classmethod
    async def list_pods(cls, namespace: str) -> list[V1Pod]:
        logger.trace(f'listing pods in namespace "{namespace}"')
        async with cls.api_client() as api:
            pod_list: V1PodList = await api.list_namespaced_pod(namespace=namespace)
            return pod_list.items or []


class ReplicasetHelper:
    @classmethod
    @contextlib.asynccontextmanager
    async def api_client(cls) -> AsyncIterator[AppsV1Api]:
        async with ApiClient() as api:
            yield AppsV1Api(api)

    @classmethod
    async def list_replicasets(cls, namespace: str) -> list[V1ReplicaSet]:
        logger.trace(f'listing replicasets in namespace "{namespace}"')
        async with cls.api_client() as api:
            rs_list: V1ReplicaSetList = await api.list_namespaced_replica_set(
                namespace=namespace
            )
            return rs_list.items or []

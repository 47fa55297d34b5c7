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

from contextlib import asynccontextmanager
from typing import AsyncIterator

from kubernetes_asyncio.client import ApiClient, AppsV1Api, V1DaemonSet

from rightsize.logging import logger
from .base_workload import STRATEGIC_MERGE_PATCH, BaseKubernetesWorkloadHelper


class DaemonSetHelper(BaseKubernetesWorkloadHelper):
    kind = "DaemonSet"

    @classmethod
    @asynccontextmanager
    async def api_client(cls) -> AsyncIterator[AppsV1Api]:
        async with ApiClient() as api:
            yield AppsV1Api(api)

    @classmethod
    async def read(cls, name: str, namespace: str) -> V1DaemonSet:
        logger.debug(f'reading daemonset "{name}" in namespace "{namespace}"')
        async with cls.api_client() as api:
            return await api.read_namespaced_daemon_set(name=name, namespace=namespace)

    @classmethod
    async def _patch(
        cls, api: AppsV1Api, name: str, namespace: str, body: dict
    ) -> V1DaemonSet:
        return await api.patch_namespaced_daemon_set(
            name=name,
            namespace=namespace,
            body=body,
            _content_type=STRATEGIC_MERGE_PATCH,
        )


# Run a dummy instantiation to detect missing ABC implementations
DaemonSetHelper()

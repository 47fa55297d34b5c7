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

from typing import Optional, Union

from kubernetes_asyncio.client import (
    V1Container,
    V1CronJob,
    V1DaemonSet,
    V1Deployment,
    V1Job,
    V1Pod,
    V1PodTemplateSpec,
    V1StatefulSet,
)

Workload = Union[V1Deployment, V1StatefulSet, V1DaemonSet, V1Job, V1CronJob]


def get_pod_template(workload: Workload) -> V1PodTemplateSpec:
    if isinstance(workload, V1CronJob):
        return workload.spec.job_template.spec.template
    return workload.spec.template


def get_containers(workload: Union[Workload, V1Pod, V1PodTemplateSpec]) -> list[V1Container]:
    if isinstance(workload, (V1Pod, V1PodTemplateSpec)):
        return workload.spec.containers or []
    else:
        return get_pod_template(workload).spec.containers or []


def find_container(
    workload: Union[Workload, V1Pod, V1PodTemplateSpec], name: str
) -> Optional[V1Container]:
    return next(
        iter((c for c in get_containers(workload=workload) if c.name == name)), None
    )

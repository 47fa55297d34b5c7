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

from .cluster import WORKLOAD_HELPERS, KubernetesCluster
from .container import ContainerHelper
from .daemonset import DaemonSetHelper
from .deployment import DeploymentHelper
from .job import CronJobHelper, JobHelper
from .pod import PodHelper, ReplicasetHelper
from .statefulset import StatefulSetHelper
from .util import find_container, get_containers, get_pod_template

__all__ = (
    "ContainerHelper",
    "CronJobHelper",
    "DaemonSetHelper",
    "DeploymentHelper",
    "JobHelper",
    "KubernetesCluster",
    "PodHelper",
    "ReplicasetHelper",
    "StatefulSetHelper",
    "WORKLOAD_HELPERS",
    "find_container",
    "get_containers",
    "get_pod_template",
)

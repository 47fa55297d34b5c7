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

from typing import Any, Optional

from rightsize.types import ContainerResources, RequestLimit


class ContainerHelper:
    @classmethod
    def quantities(cls, values: RequestLimit, *, replace: bool = False) -> dict[str, Optional[str]]:
        """Return Kubernetes quantities for the values that are set.

        CPU is rendered in millicores and memory in mebibytes. With `replace`, values
        that are not set are rendered as `None` so that a merge patch removes them.
        """
        quantities: dict[str, Optional[str]] = {}
        if values.cpu is not None:
            quantities["cpu"] = f"{values.cpu}m"
        elif replace:
            quantities["cpu"] = None
        if values.memory is not None:
            quantities["memory"] = f"{values.memory}Mi"
        elif replace:
            quantities["memory"] = None
        return quantities

    @classmethod
    def resources_patch(
        cls, resources: ContainerResources, *, replace: bool = False
    ) -> dict[str, Any]:
        """Return the strategic merge patch entry for the resources of a container.

        Requirements that are not set are left out of the patch so the values in the
        cluster are kept, unless `replace` is given, in which case they are removed.
        """
        patch: dict[str, Any] = {}
        if requests := cls.quantities(resources.requests, replace=replace):
            patch["requests"] = requests
        if limits := cls.quantities(resources.limits, replace=replace):
            patch["limits"] = limits
        return {"name": resources.name, "resources": patch}

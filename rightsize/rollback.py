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

from __future__ import annotations

from rightsize.collaborators import ClusterMutation
from rightsize.errors import RollbackError
from rightsize.logging import Mixin
from rightsize.types import AutomationCommand, ContainerResources

__all__ = ("RollbackManager",)


class RollbackManager(Mixin):
    """Restores the original resources of a container after a failed rollout.

    A rollback is attempted once. Its failure is logged and never changes the
    feedback reported for the automation.
    """

    def __init__(self, mutation: ClusterMutation) -> None:
        self.mutation = mutation

    async def rollback(
        self, command: AutomationCommand, original: ContainerResources
    ) -> bool:
        """Re-apply the original resources of the command's container.

        Returns True if the original resources were applied.
        """
        logger = self.logger.bind(automation_id=command.id)
        logger.info(f"rolling back {command.target} to {original}")
        try:
            skipped, message = await self.mutation.set_resources(
                command.controller_kind,
                command.controller_name,
                command.namespace_name,
                original,
                replace=True,
            )
            if skipped:
                raise RollbackError(
                    f"rollback of {command.target} skipped",
                    reason=message,
                    command=command,
                )
            if message:
                raise RollbackError(
                    f"rollback of {command.target} failed: {message}", command=command
                )
        except Exception as error:
            reason = f" ({error.reason})" if isinstance(error, RollbackError) and error.reason else ""
            logger.error(f"failed rolling back automation: {error}{reason}")
            return False

        logger.success(f"rolled back {command.target}")
        return True

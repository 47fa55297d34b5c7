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

"""Execution of a single automation command.

An execution locates the targeted container, merges the requested resources into
its current ones, applies the result to the cluster and verifies the rollout. When
fewer pods than expected come back up the original resources are restored.
"""
from __future__ import annotations

from typing import Optional

import loguru

from rightsize.collaborators import ClusterMutation, Discovery
from rightsize.errors import ApplyError, ContainerNotFoundError
from rightsize.logging import Mixin, log_execution_time
from rightsize.resources import merge, original_resources
from rightsize.rollback import RollbackManager
from rightsize.rollout import RolloutResult, RolloutState, RolloutVerifier
from rightsize.types import (
    AutomationCommand,
    AutomationFeedback,
    AutomationStatus,
    BaseModel,
    ContainerResources,
)

__all__ = (
    "Execution",
    "ExecutionUnit",
)

DRY_RUN_MESSAGE = "dry run enabled"
ROLLOUT_FAILED_MESSAGE = "pods failed to restart"


class Execution(BaseModel):
    """The record of an executed automation."""

    command: AutomationCommand
    feedback: AutomationFeedback
    original: Optional[ContainerResources] = None
    recommended: Optional[ContainerResources] = None
    rollout: Optional[RolloutResult] = None
    rolled_back: bool = False

    @property
    def state(self) -> Optional[RolloutState]:
        return self.rollout.state if self.rollout else None


class ExecutionUnit(Mixin):
    def __init__(
        self,
        discovery: Discovery,
        mutation: ClusterMutation,
        verifier: RolloutVerifier,
        rollback_manager: Optional[RollbackManager] = None,
        *,
        dry_run: bool = False,
    ) -> None:
        self.discovery = discovery
        self.mutation = mutation
        self.verifier = verifier
        self.rollback_manager = rollback_manager or RollbackManager(mutation)
        self.dry_run = dry_run

    async def execute(self, command: AutomationCommand) -> AutomationFeedback:
        """Execute the command and return the feedback to report for it."""
        execution = await self.run(command)
        return execution.feedback

    @log_execution_time
    async def run(self, command: AutomationCommand) -> Execution:
        """Execute the command and return a record of every step taken.

        Failures to locate the container or to apply the change are reported as failed
        feedback. A rollout that ends with fewer running pods than targeted, or that
        cannot be verified, is rolled back and reported as failed. A cancelled rollout is rolled back and reported
        as cancelled.
        """
        logger = self.logger.bind(
            automation_id=command.id,
            namespace=command.namespace_name,
            controller_kind=command.controller_kind,
            controller_name=command.controller_name,
            container=command.container_name,
        )
        logger.info(f"executing automation on {command.target}")

        try:
            original = await self._locate(command)
        except ContainerNotFoundError as error:
            logger.error(f"unable to get container details: {error}")
            return Execution(
                command=command,
                feedback=AutomationFeedback.failed(
                    command, f"unable to get container details {error}"
                ),
            )

        recommended = merge(original, command.container_resources)
        logger.debug(f"original resources {original}, recommended resources {recommended}")

        if self.dry_run:
            logger.info(f"skipping automation: {DRY_RUN_MESSAGE}")
            return Execution(
                command=command,
                feedback=AutomationFeedback.failed(command, DRY_RUN_MESSAGE),
                original=original,
                recommended=recommended,
            )

        try:
            skipped, reason = await self._apply(command, recommended)
        except ApplyError as error:
            logger.error(f"failed applying resources: {error}")
            return Execution(
                command=command,
                feedback=AutomationFeedback.failed(command, str(error)),
                original=original,
                recommended=recommended,
            )

        if skipped:
            logger.warning(f"skipping automation: {reason}")
            return Execution(
                command=command,
                feedback=AutomationFeedback.failed(command, reason or "automation skipped"),
                original=original,
                recommended=recommended,
            )

        try:
            rollout = await self.verifier.verify(
                command.controller_kind, command.controller_name, command.namespace_name
            )
        except Exception as error:
            # The change is applied, so an unverifiable rollout is restored
            logger.opt(exception=error).error(f"rollout verification failed: {error}")
            rollout = RolloutResult(
                state=RolloutState.rollout_failed,
                status=AutomationStatus.failed,
                message=ROLLOUT_FAILED_MESSAGE,
            )
        logger.info(
            f"rollout {rollout.state}: {rollout.message} ({rollout.running_pods}/{rollout.target_pods} pods running)"
        )

        execution = Execution(
            command=command,
            feedback=AutomationFeedback.for_command(
                command, rollout.status, rollout.message
            ),
            original=original,
            recommended=recommended,
            rollout=rollout,
        )
        if (
            rollout.state in (RolloutState.cancelled, RolloutState.rollout_failed)
            or rollout.shortfall
        ):
            await self._roll_back(logger, execution)

        return execution

    async def _locate(self, command: AutomationCommand) -> ContainerResources:
        try:
            container = await self.discovery.find_container(
                command.namespace_name,
                command.controller_kind,
                command.controller_name,
                command.container_name,
            )
            return original_resources(container)
        except ContainerNotFoundError:
            raise
        except Exception as error:
            raise ContainerNotFoundError(str(error), command=command) from error

    async def _apply(
        self, command: AutomationCommand, resources: ContainerResources
    ) -> tuple[bool, Optional[str]]:
        try:
            skipped, message = await self.mutation.set_resources(
                command.controller_kind,
                command.controller_name,
                command.namespace_name,
                resources,
            )
        except ApplyError:
            raise
        except Exception as error:
            raise ApplyError(str(error), command=command) from error

        if not skipped and message:
            raise ApplyError(message, command=command)

        return skipped, message

    async def _roll_back(
        self, logger: loguru.Logger, execution: Execution
    ) -> None:
        rollout = execution.rollout
        logger.warning(
            f"restoring original resources after {rollout.state} rollout ({rollout.running_pods}/{rollout.target_pods} pods running)"
        )
        execution.rolled_back = await self.rollback_manager.rollback(
            execution.command, execution.original
        )
        if rollout.state == RolloutState.cancelled:
            # The cancellation is reported as is
            return

        execution.rollout = rollout.model_copy(
            update={
                "state": RolloutState.rollout_failed,
                "status": AutomationStatus.failed,
                "message": ROLLOUT_FAILED_MESSAGE,
            }
        )
        execution.feedback = AutomationFeedback.failed(
            execution.command, ROLLOUT_FAILED_MESSAGE
        )

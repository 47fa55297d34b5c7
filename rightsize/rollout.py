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

"""Verification of the rollout triggered by a resource change.

Changing the pod template of a controller restarts its pods. The verifier resolves
the pods that belong to the new revision of the controller and polls their phase
until the expected number of pods is running, the rollout timeout expires or the
verification is cancelled.
"""
from __future__ import annotations

import asyncio
import enum
import time
from typing import Iterable, NamedTuple, Optional

import pydantic
from kubernetes_asyncio.client import V1Pod, V1ReplicaSet

from rightsize.collaborators import ClusterQuery
from rightsize.errors import RolloutDispatchError
from rightsize.logging import Mixin, logger
from rightsize.types import AutomationStatus, BaseModel, ControllerKind, Duration, PodPhase

__all__ = (
    "RolloutResult",
    "RolloutState",
    "RolloutVerifier",
)

STATUS_MESSAGES = {
    PodPhase.running: "pods restarted successfully",
    PodPhase.failed: "pods failed to restart",
    PodPhase.unknown: "pods status is unknown",
}
DEFAULT_STATUS_MESSAGE = "pods restarted"
DISPATCH_FAILED_MESSAGE = "failed to trigger pod status"
CANCELLED_MESSAGE = "rollout verification cancelled"


class RolloutState(str, enum.Enum):
    """The states of a rollout verification."""

    dispatching = "dispatching"
    polling = "polling"
    succeeded = "succeeded"
    timed_out = "timed_out"
    dispatch_failed = "dispatch_failed"
    unsupported_kind = "unsupported_kind"
    cancelled = "cancelled"
    rollout_failed = "rollout_failed"

    @property
    def terminal(self) -> bool:
        return self not in (RolloutState.dispatching, RolloutState.polling)

    def __str__(self) -> str:
        return self.value


class RolloutResult(BaseModel):
    state: RolloutState
    status: AutomationStatus
    message: str
    target_pods: int = pydantic.Field(0, ge=0)
    running_pods: int = pydantic.Field(0, ge=0)

    @property
    def shortfall(self) -> bool:
        """Return True if fewer pods are running than the rollout targets."""
        return self.running_pods < self.target_pods


class _Target(NamedTuple):
    # Pods of the target are matched by their `generateName` containing the name
    name: str
    pods: int


class RolloutVerifier(Mixin):
    """Polls the pods of a controller until its rollout completes.

    Deployments are resolved on every poll to their most recently created replica
    set with replicas, so a rollout that creates a new replica set while being
    verified is followed. Other controllers are resolved once before polling starts.

    Setting the `stop` event interrupts a pending wait and ends the verification
    with the `cancelled` state.
    """

    def __init__(
        self,
        query: ClusterQuery,
        *,
        poll_interval: Duration = Duration("15s"),
        timeout: Duration = Duration("15m"),
        stop: Optional[asyncio.Event] = None,
    ) -> None:
        self.query = query
        self.poll_interval = Duration(poll_interval)
        self.timeout = Duration(timeout)
        self.stop = stop or asyncio.Event()

    async def verify(self, kind: str, name: str, namespace: str) -> RolloutResult:
        """Verify the rollout of the named controller and return its outcome."""
        controller_kind = ControllerKind.from_str(kind)
        if controller_kind is None:
            return RolloutResult(
                state=RolloutState.unsupported_kind,
                status=AutomationStatus.failed,
                message=f"unsupported controller kind {kind}",
            )

        self.logger.debug(
            f"{RolloutState.dispatching}: resolving pods of {controller_kind} '{name}' in namespace '{namespace}'"
        )
        target = _Target("", 0)
        if controller_kind != ControllerKind.deployment:
            try:
                target = await self._dispatch(controller_kind, name, namespace)
            except Exception as error:
                self.logger.warning(
                    f"failed resolving {controller_kind} '{name}' in namespace '{namespace}': {error}"
                )
                return self._dispatch_failed(target, 0)

        running_pods = 0
        started_at = time.monotonic()
        while time.monotonic() - started_at < self.timeout.total_seconds():
            if await self._wait():
                self.logger.info(
                    f"verification of {controller_kind} '{name}' cancelled with {running_pods}/{target.pods} pods running"
                )
                return RolloutResult(
                    state=RolloutState.cancelled,
                    status=AutomationStatus.failed,
                    message=CANCELLED_MESSAGE,
                    target_pods=target.pods,
                    running_pods=running_pods,
                )

            try:
                if controller_kind == ControllerKind.deployment:
                    target = await self._resolve_deployment(name, namespace)
                pods = await self.query.get_pods(namespace)
            except Exception as error:
                self.logger.warning(
                    f"failed polling pods of {controller_kind} '{name}' in namespace '{namespace}': {error}"
                )
                return self._dispatch_failed(target, running_pods)

            running_pods, phase = self._count_running(pods, target.name)
            self.logger.debug(
                f"{RolloutState.polling}: {running_pods}/{target.pods} pods of '{target.name}' running (last phase {phase})"
            )
            if running_pods == target.pods:
                return RolloutResult(
                    state=RolloutState.succeeded,
                    status=AutomationStatus.executed,
                    message=STATUS_MESSAGES.get(phase, DEFAULT_STATUS_MESSAGE),
                    target_pods=target.pods,
                    running_pods=running_pods,
                )

        return RolloutResult(
            state=RolloutState.timed_out,
            status=AutomationStatus.failed,
            message=f"pods restarting exceeded timeout ({self.timeout})",
            target_pods=target.pods,
            running_pods=running_pods,
        )

    async def _wait(self) -> bool:
        """Wait for one poll interval. Return True if the verification was cancelled."""
        if self.stop.is_set():
            return True
        try:
            await asyncio.wait_for(self.stop.wait(), self.poll_interval.total_seconds())
        except asyncio.TimeoutError:
            return False
        return True

    async def _dispatch(
        self, kind: ControllerKind, name: str, namespace: str
    ) -> _Target:
        if kind == ControllerKind.stateful_set:
            stateful_set = await self.query.get_stateful_set(namespace, name)
            if (stateful_set.status.ready_replicas or 0) > 0:
                return _Target(stateful_set.metadata.name, stateful_set.spec.replicas or 0)
            return _Target("", 0)

        elif kind == ControllerKind.daemon_set:
            daemon_set = await self.query.get_daemon_set(namespace, name)
            if (daemon_set.status.number_ready or 0) > 0:
                return _Target(
                    daemon_set.metadata.name,
                    daemon_set.status.desired_number_scheduled or 0,
                )
            return _Target("", 0)

        elif kind in (ControllerKind.job, ControllerKind.cron_job):
            # NOTE: Jobs are looked up as the CronJob that spawns them
            cron_job = await self.query.get_cron_job(namespace, name)
            return _Target(cron_job.metadata.name, 1)

        raise NotImplementedError(f"missing dispatch implementation for kind {kind}")

    async def _resolve_deployment(self, name: str, namespace: str) -> _Target:
        replica_sets: list[V1ReplicaSet] = [
            replica_set
            for replica_set in await self.query.get_replica_sets(namespace)
            if name in (replica_set.metadata.name or "")
            and (replica_set.status.replicas or 0) > 0
        ]
        if not replica_sets:
            raise RolloutDispatchError(
                f"unable to locate replica sets with replicas for deployment '{name}' in namespace '{namespace}'"
            )

        # NOTE: The newest replica set is picked even when none of its replicas are ready
        latest = sorted(
            replica_sets,
            key=lambda replica_set: (
                replica_set.metadata.creation_timestamp.timestamp()
                if replica_set.metadata.creation_timestamp
                else 0.0
            ),
            reverse=True,
        )[0]
        return _Target(latest.metadata.name, latest.spec.replicas or 0)

    @staticmethod
    def _count_running(pods: Iterable[V1Pod], name: str) -> tuple[int, PodPhase]:
        running, phase = 0, PodPhase.pending
        for pod in pods:
            if name not in (pod.metadata.generate_name or ""):
                continue

            phase = PodPhase.from_str(pod.status.phase if pod.status else None)
            logger.trace(f"pod '{pod.metadata.name}' is in phase {phase}")
            if phase == PodPhase.running:
                running += 1
            elif phase != PodPhase.pending:
                break

        return running, phase

    def _dispatch_failed(self, target: _Target, running_pods: int) -> RolloutResult:
        return RolloutResult(
            state=RolloutState.dispatch_failed,
            status=AutomationStatus.failed,
            message=DISPATCH_FAILED_MESSAGE,
            target_pods=target.pods,
            running_pods=running_pods,
        )

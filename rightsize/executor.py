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

"""The automation executor.

The executor wires the intake gate, the worker pool and the feedback dispatcher
around a shared buffer and owns the cancellation signal used to shut them down.

```python
async with Executor(cluster, cluster, cluster, transport) as executor:
    response = await executor.listener(payload)
```
"""
from __future__ import annotations

import asyncio
from typing import Optional

from rightsize.collaborators import ClusterMutation, ClusterQuery, Discovery, Transport
from rightsize.configuration import ExecutorConfiguration, FeedbackConfiguration
from rightsize.execution import ExecutionUnit
from rightsize.feedback import FeedbackDispatcher
from rightsize.intake import InProgressSet, IntakeGate
from rightsize.logging import Mixin
from rightsize.rollback import RollbackManager
from rightsize.rollout import RolloutVerifier
from rightsize.types import AutomationCommand
from rightsize.workers import WorkerPool

__all__ = ("Executor",)


class Executor(Mixin):
    def __init__(
        self,
        discovery: Discovery,
        mutation: ClusterMutation,
        query: ClusterQuery,
        transport: Transport,
        config: Optional[ExecutorConfiguration] = None,
        feedback: Optional[FeedbackConfiguration] = None,
    ) -> None:
        self.config = config or ExecutorConfiguration()
        self.stop_event = asyncio.Event()
        self.queue: asyncio.Queue[AutomationCommand] = asyncio.Queue(
            maxsize=self.config.buffer_length
        )
        self.in_progress = InProgressSet()

        self.verifier = RolloutVerifier(
            query,
            poll_interval=self.config.poll_interval,
            timeout=self.config.rollout_timeout,
            stop=self.stop_event,
        )
        self.unit = ExecutionUnit(
            discovery,
            mutation,
            self.verifier,
            RollbackManager(mutation),
            dry_run=self.config.dry_run,
        )
        self.dispatcher = FeedbackDispatcher(transport, feedback)
        self.gate = IntakeGate(
            self.queue, self.in_progress, timeout=self.config.buffer_timeout
        )
        self.pool = WorkerPool(
            self.queue,
            self.in_progress,
            self.unit,
            self.dispatcher,
            workers=self.config.workers,
            stop=self.stop_event,
        )

    async def start(self) -> None:
        if self.config.dry_run:
            self.logger.warning("dry run enabled: resource changes will not be applied")
        await self.pool.start()

    async def shutdown(self) -> None:
        """Cancel in-flight rollouts and wait for the workers to exit.

        Commands still waiting in the buffer are discarded.
        """
        self.logger.info(
            f"shutting down executor ({len(self.in_progress)} automations in progress, {self.queue.qsize()} buffered)"
        )
        await self.pool.stop()

    async def submit(self, command: AutomationCommand) -> bool:
        return await self.gate.submit(command)

    async def listener(self, payload: bytes) -> bytes:
        return await self.gate.listener(payload)

    async def __aenter__(self) -> Executor:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.shutdown()

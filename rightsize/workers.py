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

import asyncio
from typing import Optional

from rightsize.execution import ExecutionUnit
from rightsize.feedback import FeedbackDispatcher
from rightsize.intake import InProgressSet
from rightsize.logging import Mixin, logger
from rightsize.types import AutomationCommand, AutomationFeedback

__all__ = ("WorkerPool",)


class WorkerPool(Mixin):
    """A fixed number of workers executing buffered automation commands.

    Each worker executes one command at a time. Commands are taken from the buffer in
    order but may complete in any order. Two workers may execute commands targeting
    the same container concurrently.
    """

    def __init__(
        self,
        queue: asyncio.Queue,
        in_progress: InProgressSet,
        unit: ExecutionUnit,
        dispatcher: FeedbackDispatcher,
        *,
        workers: int = 5,
        stop: Optional[asyncio.Event] = None,
    ) -> None:
        if workers < 1:
            raise ValueError(f"worker count must be positive, got {workers}")

        self.queue = queue
        self.in_progress = in_progress
        self.unit = unit
        self.dispatcher = dispatcher
        self.workers = workers
        self.stop_event = stop or asyncio.Event()
        self._task_group_task: Optional[asyncio.Task] = None
        self._idle: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task_group_task is not None and not self._task_group_task.done()

    async def start(self) -> None:
        """Start the workers. A pool can only be started once."""
        if self._task_group_task is not None:
            raise RuntimeError("worker pool has already been started")

        started = asyncio.Event()

        async def _run() -> None:
            async with asyncio.TaskGroup() as tg:
                for index in range(self.workers):
                    name = f"worker-{index}"
                    tg.create_task(self._work(name), name=name)
                started.set()

        self._task_group_task = asyncio.create_task(_run(), name="worker-pool")
        await started.wait()
        self.logger.info(f"started {self.workers} automation workers")

    async def stop(self) -> None:
        """Signal cancellation and wait for the workers to exit.

        Workers waiting for a command exit immediately. Workers executing a command
        finish it first: a rollout being verified is cancelled and rolled back and its
        feedback is still dispatched.
        """
        if self._task_group_task is None:
            return

        self.stop_event.set()
        for task in list(self._idle):
            task.cancel()

        await self._task_group_task
        self.logger.info("automation workers stopped")

    async def _work(self, name: str) -> None:
        task = asyncio.current_task()
        with logger.contextualize(worker=name):
            while not self.stop_event.is_set():
                self._idle.add(task)
                try:
                    command: AutomationCommand = await self.queue.get()
                finally:
                    self._idle.discard(task)

                try:
                    await self._process(command)
                finally:
                    self.queue.task_done()

    async def _process(self, command: AutomationCommand) -> None:
        logger = self.logger.bind(automation_id=command.id)
        try:
            feedback = await self.unit.execute(command)
        except Exception as error:
            logger.opt(exception=error).error(f"automation failed unexpectedly: {error}")
            feedback = AutomationFeedback.failed(command, str(error))
        finally:
            await self.in_progress.discard(command.id)

        await self.dispatcher.dispatch(feedback)

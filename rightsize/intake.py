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

"""Admission of automation commands into the execution buffer.

Commands are deduplicated by identifier while they are queued or executing. Once a
command completes its identifier is forgotten and a redelivery is executed again.
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Optional

from rightsize.codec import decode_command, encode_response
from rightsize.errors import SubmissionTimeoutError
from rightsize.logging import Mixin
from rightsize.types import AutomationCommand, AutomationResponse, Duration

__all__ = (
    "InProgressSet",
    "IntakeGate",
)


class InProgressSet:
    """The identifiers of commands that are queued or executing."""

    def __init__(self) -> None:
        self._identifiers: set[str] = set()
        self._lock = asyncio.Lock()

    async def add(self, identifier: str) -> bool:
        """Add an identifier. Returns False if it was already present."""
        async with self._lock:
            if identifier in self._identifiers:
                return False
            self._identifiers.add(identifier)
            return True

    async def discard(self, identifier: str) -> None:
        async with self._lock:
            self._identifiers.discard(identifier)

    async def contains(self, identifier: str) -> bool:
        async with self._lock:
            return identifier in self._identifiers

    @contextlib.asynccontextmanager
    async def reserve(self, identifier: str) -> AsyncIterator[bool]:
        """Reserve an identifier for the duration of the block.

        Yields False without reserving anything if the identifier is already present.
        The reservation is kept if the block completes and released if it raises or is
        cancelled.
        """
        if not await self.add(identifier):
            yield False
            return

        committed = False
        try:
            yield True
            committed = True
        finally:
            if not committed:
                await self.discard(identifier)

    def __len__(self) -> int:
        return len(self._identifiers)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({sorted(self._identifiers)!r})"


class IntakeGate(Mixin):
    """Deduplicates, normalizes and buffers incoming automation commands."""

    def __init__(
        self,
        queue: asyncio.Queue,
        in_progress: Optional[InProgressSet] = None,
        *,
        timeout: Duration = Duration("10s"),
    ) -> None:
        self.queue = queue
        self.in_progress = in_progress if in_progress is not None else InProgressSet()
        self.timeout = Duration(timeout)

    async def submit(self, command: AutomationCommand) -> bool:
        """Queue a command for execution.

        Returns False if a command with the same identifier is already queued or
        executing, in which case the command is discarded.

        Raises:
            SubmissionTimeoutError: Raised if the buffer stays full for longer than the
                submission timeout.
        """
        logger = self.logger.bind(automation_id=command.id)
        async with self.in_progress.reserve(command.id) as reserved:
            if not reserved:
                logger.debug(f"discarding duplicate automation for {command.target}")
                return False

            normalized = command.normalized()
            try:
                await asyncio.wait_for(
                    self.queue.put(normalized), self.timeout.total_seconds()
                )
            except asyncio.TimeoutError as error:
                raise SubmissionTimeoutError(
                    f"timeout (after {self.timeout}) waiting to push automation into buffer"
                ) from error

        logger.info(f"queued automation for {command.target}")
        return True

    async def listener(self, payload: bytes) -> bytes:
        """Handle an automation packet and return the encoded response.

        Raises:
            DecodeError: Raised if the payload cannot be decoded.
        """
        command = decode_command(payload)
        try:
            await self.submit(command)
        except SubmissionTimeoutError as error:
            self.logger.bind(automation_id=command.id).error(str(error))
            return encode_response(AutomationResponse(id=command.id, error=str(error)))

        return encode_response(AutomationResponse())

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

"""Running the agent as a long-lived process."""
from __future__ import annotations

import asyncio
import signal
import sys
from typing import Optional

from rightsize.api import HTTPTransport, StreamTransport
from rightsize.collaborators import Transport
from rightsize.configuration import AgentConfiguration
from rightsize.errors import DecodeError
from rightsize.executor import Executor
from rightsize.kubernetes import KubernetesCluster
from rightsize.logging import Mixin
from rightsize.types import AutomationCommand

__all__ = ("AgentRunner",)


class AgentRunner(Mixin):
    """Runs an executor against the configured cluster.

    Automation payloads are read as newline delimited JSON. Feedback is posted to the
    configured endpoint, or written as JSON lines to stdout when no endpoint is set.
    """

    def __init__(
        self,
        config: AgentConfiguration,
        cluster: Optional[KubernetesCluster] = None,
        transport: Optional[Transport] = None,
    ) -> None:
        self.config = config
        self.cluster = cluster or KubernetesCluster(config.kubernetes)
        if transport is None:
            if config.transport.url:
                transport = HTTPTransport(config.transport)
            else:
                transport = StreamTransport()
        self.transport = transport
        self._shutdown = asyncio.Event()
        self._signal: Optional[signal.Signals] = None

    def executor(self) -> Executor:
        return Executor(
            self.cluster,
            self.cluster,
            self.cluster,
            self.transport,
            self.config.executor,
            self.config.feedback,
        )

    def request_shutdown(self, sig: Optional[signal.Signals] = None) -> None:
        if self._shutdown.is_set():
            self.logger.warning("already shutting down, ignoring redundant request")
            return

        if sig:
            self.logger.info(f"Received exit signal {sig.name}...")
        self._signal = sig
        self._shutdown.set()

    async def consume(self, executor: Executor, reader: asyncio.StreamReader) -> None:
        """Submit every payload line until the reader reaches EOF."""
        while line := await reader.readline():
            payload = line.strip()
            if not payload:
                continue

            try:
                response = await executor.listener(payload)
            except DecodeError as error:
                self.logger.error(f"discarding automation payload: {error}")
                if error.reason:
                    self.logger.debug(error.reason)
                continue

            self.logger.debug(f"automation listener response: {response.decode()}")

    async def run(self, reader: Optional[asyncio.StreamReader] = None) -> None:
        """Run until a shutdown signal is received or the input is exhausted.

        At end of input the commands already accepted are executed before exiting. A
        signal cancels in-flight rollouts instead.
        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.request_shutdown, sig)

        if reader is None:
            reader = asyncio.StreamReader()
            await loop.connect_read_pipe(
                lambda: asyncio.StreamReaderProtocol(reader), sys.stdin
            )

        await self.cluster.connect()
        try:
            async with self.executor() as executor:
                consumer = asyncio.create_task(self._drain(executor, reader))
                shutdown = asyncio.create_task(self._shutdown.wait())
                await asyncio.wait(
                    {consumer, shutdown}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in (consumer, shutdown):
                    task.cancel()

                if consumer.done() and not consumer.cancelled():
                    if error := consumer.exception():
                        self.logger.error(f"failed reading automation payloads: {error!r}")
                        raise error
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
            await self._close_transport()

        self.logger.info("agent stopped")

    async def execute(self, command: AutomationCommand) -> None:
        """Execute a single command through the executor and wait for its feedback."""
        await self.cluster.connect()
        try:
            async with self.executor() as executor:
                await executor.submit(command)
                await executor.queue.join()
        finally:
            await self._close_transport()

    async def _drain(self, executor: Executor, reader: asyncio.StreamReader) -> None:
        await self.consume(executor, reader)
        self.logger.info(
            f"end of input, waiting for {len(executor.in_progress)} automations"
        )
        await executor.queue.join()

    async def _close_transport(self) -> None:
        if isinstance(self.transport, HTTPTransport):
            await self.transport.close()

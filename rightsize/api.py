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

"""Transports delivering feedback envelopes out of the agent."""
from __future__ import annotations

import datetime
import sys
from typing import Optional, TextIO

import backoff
import devtools
import httpx

import rightsize
from rightsize.configuration import TransportConfiguration
from rightsize.logging import Mixin, logger
from rightsize.types import Package, json_dumps

__all__ = (
    "HTTPTransport",
    "StreamTransport",
    "is_fatal_status_code",
)

USER_AGENT = "github.com/rightsize/rightsize"

# Client errors worth retrying
RETRYABLE_STATUS_CODES = (404, 408, 429)


def user_agent() -> str:
    return f"{USER_AGENT} v{rightsize.__version__}"


def is_fatal_status_code(error: Exception) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        if status_code in RETRYABLE_STATUS_CODES:
            return False
        if status_code < 500:
            logger.error(
                f"Giving up on non-retryable HTTP status code {status_code} ({error.response.reason_phrase})"
            )
            return True
    return False


def _seconds_until(time: datetime.datetime) -> float:
    return (time - datetime.datetime.now(datetime.timezone.utc)).total_seconds()


class HTTPTransport(Mixin):
    """Posts envelopes as JSON to an HTTP endpoint.

    Failed deliveries are retried with exponential backoff up to the retry budget of the
    envelope and never beyond its expiry time. Envelopes that have already expired are
    dropped.
    """

    def __init__(
        self,
        config: TransportConfiguration,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if config.url is None:
            raise ValueError("an HTTP transport requires a URL")

        self.config = config
        if client is None:
            headers = {
                "user-agent": user_agent(),
                "accept": "application/json",
                "content-type": "application/json",
            }
            if config.token:
                headers["authorization"] = f"Bearer {config.token.get_secret_value()}"
            client = httpx.AsyncClient(
                headers=headers,
                timeout=config.timeout.total_seconds(),
            )
        self._client = client

    async def pipe(self, package: Package) -> Optional[httpx.Response]:
        """Deliver a package, returning the response or None if it was dropped."""
        if package.expired:
            self.logger.warning(
                f"dropping expired {package.kind} package (expired at {package.expiry_time})"
            )
            return None

        @backoff.on_exception(
            backoff.expo,
            httpx.HTTPError,
            max_tries=package.retries + 1,
            max_time=lambda: max(_seconds_until(package.expiry_time), 0.0),
            giveup=is_fatal_status_code,
        )
        async def _post(package: Package) -> httpx.Response:
            body = json_dumps(package)
            self.logger.trace(f"POST {package.kind}: {devtools.pformat(body)}")
            try:
                response = await self._client.post(str(self.config.url), content=body)
                response.raise_for_status()
            except httpx.HTTPError as error:
                if isinstance(error, httpx.HTTPStatusError):
                    response_text = devtools.pformat(error.response.text)
                else:
                    response_text = "(No response on error)"
                self.logger.error(
                    f'HTTP error "{error.__class__.__name__}" encountered while posting {package.kind}: {error}\n\n Response: {response_text}'
                )
                raise

            self.logger.debug(
                f"POST {package.kind} response ({response.status_code} {response.reason_phrase})"
            )
            return response

        return await _post(package)

    async def close(self) -> None:
        await self._client.aclose()


class StreamTransport(Mixin):
    """Writes envelopes as JSON lines to a text stream (stdout by default)."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout

    def pipe(self, package: Package) -> None:
        self.stream.write(json_dumps(package).decode() + "\n")
        self.stream.flush()

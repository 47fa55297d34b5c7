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

import datetime
import inspect
from typing import Optional

from rightsize.collaborators import Transport
from rightsize.configuration import FeedbackConfiguration
from rightsize.logging import Mixin
from rightsize.types import AutomationFeedback, Package, PacketKind

__all__ = ("FeedbackDispatcher",)


class FeedbackDispatcher(Mixin):
    """Wraps automation feedback into a transport envelope and hands it off for delivery.

    Envelopes carry the delivery QoS configured for feedback: a priority, an absolute
    expiry time, a maximum queue count and a retry budget. Delivery itself is the
    responsibility of the transport; failures to queue a package are logged.
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[FeedbackConfiguration] = None,
    ) -> None:
        self.transport = transport
        self.config = config or FeedbackConfiguration()

    def package(self, feedback: AutomationFeedback) -> Package:
        """Return the envelope for a feedback, expiring relative to the current time."""
        return Package(
            kind=PacketKind.automation_feedback,
            expiry_time=datetime.datetime.now(datetime.timezone.utc) + self.config.expiry,
            expiry_count=self.config.expiry_count,
            priority=self.config.priority,
            retries=self.config.retries,
            data=feedback,
        )

    async def dispatch(self, feedback: AutomationFeedback) -> Optional[Package]:
        """Send a feedback through the transport.

        Returns the package handed to the transport, or None if the transport failed.
        """
        package = self.package(feedback)
        logger = self.logger.bind(automation_id=feedback.id)
        logger.debug(
            f"sending {package.kind} ({feedback.status}: {feedback.message}) with priority {package.priority}"
        )
        try:
            result = self.transport.pipe(package)
            if inspect.isawaitable(result):
                await result
        except Exception as error:
            logger.opt(exception=error).error(f"failed sending automation feedback: {error}")
            return None

        return package

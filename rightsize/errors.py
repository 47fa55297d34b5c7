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
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from rightsize.types.automation import AutomationCommand

__all__ = (
    "ApplyError",
    "BaseError",
    "ContainerNotFoundError",
    "DecodeError",
    "ExecutionError",
    "RollbackError",
    "RolloutDispatchError",
    "SubmissionTimeoutError",
)


class BaseError(RuntimeError):
    """The base class for all errors in the rightsize package."""

    def __init__(
        self,
        message: str = "",
        reason: Optional[str] = None,
        *args,
    ) -> None:
        super().__init__(message, *args)
        self._reason = reason
        self._created_at = datetime.datetime.now()

    @property
    def reason(self) -> Optional[str]:
        """A supplemental reason explaining why the error occurred."""
        return self._reason

    @reason.setter
    def reason(self, value: Optional[str]) -> None:
        self._reason = value

    @property
    def created_at(self) -> datetime.datetime:
        """The date and time when the error occurred."""
        return self._created_at


class DecodeError(BaseError):
    """An inbound automation payload could not be decoded.

    Decode errors are surfaced to the caller of the listener and the command never
    enters the pipeline.
    """


class SubmissionTimeoutError(BaseError):
    """The automation buffer stayed full beyond the submission wait window."""


class ExecutionError(BaseError):
    """An error occurred while executing an automation command."""

    def __init__(
        self,
        message: str = "",
        reason: Optional[str] = None,
        *args,
        command: Optional[AutomationCommand] = None,
    ) -> None:
        super().__init__(message, reason, *args)
        self._command = command

    @property
    def command(self) -> Optional[AutomationCommand]:
        """The command that was executing when the error occurred."""
        return self._command


class ContainerNotFoundError(ExecutionError):
    """The container targeted by an automation could not be located."""


class ApplyError(ExecutionError):
    """The cluster refused to apply a resource change."""


class RolloutDispatchError(ExecutionError):
    """Querying the cluster failed while resolving or observing a rollout."""


class RollbackError(ExecutionError):
    """Restoring the original resources after a failed rollout did not succeed.

    Rollback errors are logged and never change the feedback of the automation.
    """

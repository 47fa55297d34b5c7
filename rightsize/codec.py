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

"""Encoding and decoding of automation packets exchanged with the gateway."""
from __future__ import annotations

from typing import Union

import orjson
import pydantic

from rightsize.errors import DecodeError
from rightsize.types import AutomationCommand, AutomationResponse, json_dumps

__all__ = (
    "decode_command",
    "encode_response",
)


def decode_command(payload: Union[bytes, bytearray, memoryview, str]) -> AutomationCommand:
    """Decode an automation command from a JSON payload.

    Raises:
        DecodeError: Raised if the payload is not valid JSON or not a valid command.
    """
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as error:
        raise DecodeError(f"invalid automation payload: {error}") from error

    if not isinstance(data, dict):
        raise DecodeError(
            f"invalid automation payload: expected an object, got {type(data).__name__}"
        )

    try:
        return AutomationCommand.model_validate(data)
    except pydantic.ValidationError as error:
        raise DecodeError(
            f"invalid automation payload: {error.error_count()} validation error(s)",
            reason=str(error),
        ) from error


def encode_response(response: AutomationResponse) -> bytes:
    """Encode a listener response, omitting unset fields."""
    return json_dumps(response.model_dump(mode="json", by_alias=True, exclude_none=True))

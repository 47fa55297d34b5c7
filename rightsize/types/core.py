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

"""The `rightsize.types.core` module defines the essential data types shared by all
consumers of the rightsize package.
"""
from __future__ import annotations

import datetime
from typing import Any, Union

import orjson
import pydantic
import pydantic_core
from pydantic_core import core_schema

import rightsize.utilities.duration_str

__all__ = ["BaseModel", "Duration", "DurationDescriptor", "Numeric", "json_dumps"]

Numeric = Union[pydantic.StrictFloat, pydantic.StrictInt]
DurationDescriptor = Union[datetime.timedelta, str, Numeric]


def json_dumps(value: Any) -> bytes:
    """Serialize a model or plain object into JSON bytes via `orjson`.

    Pydantic models are dumped in JSON mode first so that enums, datetimes and
    durations take their wire representation.
    """
    if isinstance(value, pydantic.BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    return orjson.dumps(value)


class BaseModel(pydantic.BaseModel):
    """The `BaseModel` class is the base class implementation of Pydantic model
    types utilized throughout the library.
    """

    model_config = pydantic.ConfigDict(
        validate_assignment=True,
        validate_default=True,
        populate_by_name=True,
        use_enum_values=False,
    )


class Duration(datetime.timedelta):
    """
    Duration is a subclass of datetime.timedelta that is serialized as a Golang duration string.

    Duration objects can be initialized with a duration string, a numeric seconds value,
    a timedelta object, and with the time component keywords of timedelta.
    """

    def __new__(
        cls,
        duration: DurationDescriptor = 0,
        **kwargs,
    ) -> Duration:
        seconds = kwargs.pop("seconds", 0)
        microseconds = kwargs.pop("microseconds", 0)

        if isinstance(duration, str):
            microseconds += (
                rightsize.utilities.duration_str.parse_nanoseconds(duration) / 1000
            )
        elif isinstance(duration, datetime.timedelta):
            microseconds += duration / datetime.timedelta(microseconds=1)
        elif isinstance(duration, (int, float)):
            # NOTE: a numeric first argument is seconds, unlike timedelta (days)
            seconds += duration
        else:
            raise TypeError(f"cannot create Duration from {type(duration).__name__}")

        return datetime.timedelta.__new__(
            cls, seconds=seconds, microseconds=microseconds, **kwargs
        )

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: pydantic.GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json"
            ),
        )

    @classmethod
    def __get_pydantic_json_schema__(
        cls, schema: core_schema.CoreSchema, handler: pydantic.GetJsonSchemaHandler
    ) -> dict[str, Any]:
        return {
            "type": "string",
            "format": "duration",
            "examples": ["300ms", "5m", "2h45m", "15s"],
        }

    @classmethod
    def validate(cls, value: Any) -> Duration:
        if isinstance(value, bool):
            raise pydantic_core.PydanticCustomError(
                "duration", "booleans are not durations"
            )
        if isinstance(value, (str, datetime.timedelta, int, float)):
            try:
                return cls(value)
            except ValueError as error:
                raise pydantic_core.PydanticCustomError(
                    "duration", "{error}", {"error": str(error)}
                ) from error

        raise pydantic_core.PydanticCustomError(
            "duration", "invalid duration value {value}", {"value": str(value)}
        )

    @classmethod
    def since(cls, time: datetime.datetime) -> Duration:
        """Returns a Duration object representing the elapsed time since a given start time."""
        return cls(datetime.datetime.now() - time)

    def __str__(self) -> str:
        return rightsize.utilities.duration_str.format_timedelta(self)

    def __repr__(self) -> str:
        return f"Duration('{self}')"

    def __eq__(self, other) -> bool:
        if isinstance(other, str):
            return self.__str__() == other
        elif isinstance(other, datetime.timedelta):
            return super().__eq__(other)
        elif isinstance(other, (int, float)):
            return self.total_seconds() == other

        return False

    def __hash__(self) -> int:
        return super().__hash__()

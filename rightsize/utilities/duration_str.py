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

"""Parse and format Golang style duration strings.

A duration string is a possibly signed sequence of decimal numbers, each with an
optional fraction and a unit suffix, such as "300ms", "-1.5h" or "2h45m". These
are the durations understood by the gateway and by the flags of the agent.
"""
import datetime
import re

NANOSECOND = 1
MICROSECOND = 1000 * NANOSECOND
MILLISECOND = 1000 * MICROSECOND
SECOND = 1000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE
DAY = 24 * HOUR

UNITS: dict[str, int] = {
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "µs": MICROSECOND,
    "μs": MICROSECOND,
    "ms": MILLISECOND,
    "s": SECOND,
    "m": MINUTE,
    "h": HOUR,
    "d": DAY,
}

_COMPONENT_PATTERN = re.compile(r"(\d+(?:\.\d*)?|\.\d+)([a-zµμ]+)")
_DURATION_PATTERN = re.compile(r"^[-+]?((\d+(\.\d*)?|\.\d+)[a-zµμ]+)+$")


def parse_nanoseconds(duration: str) -> int:
    """Return the number of nanoseconds represented by a duration string.

    Raises:
        ValueError: Raised if the string is not a valid duration.
    """
    duration = duration.strip()
    if duration in ("0", "+0", "-0"):
        return 0

    if not _DURATION_PATTERN.match(duration):
        raise ValueError(f"invalid duration '{duration}'")

    total = 0.0
    for value, unit in _COMPONENT_PATTERN.findall(duration):
        if unit not in UNITS:
            raise ValueError(f"unknown unit '{unit}' in duration '{duration}'")
        total += float(value) * UNITS[unit]

    sign = -1 if duration.startswith("-") else 1
    return sign * round(total)


def parse_timedelta(duration: str) -> datetime.timedelta:
    """Parse a duration string into a `datetime.timedelta`."""
    return datetime.timedelta(microseconds=parse_nanoseconds(duration) / MICROSECOND)


def format_timedelta(delta: datetime.timedelta) -> str:
    """Return the duration string representation of a timedelta (e.g. "1h30m", "250ms")."""
    nanoseconds = round(delta / datetime.timedelta(microseconds=1)) * MICROSECOND
    if nanoseconds == 0:
        return "0s"

    sign = "-" if nanoseconds < 0 else ""
    remaining = abs(nanoseconds)

    if remaining < SECOND:
        parts = []
        for unit, size in (("ms", MILLISECOND), ("us", MICROSECOND), ("ns", NANOSECOND)):
            count, remaining = divmod(remaining, size)
            if count:
                parts.append(f"{count}{unit}")
        return sign + "".join(parts)

    parts = []
    for unit, size in (("h", HOUR), ("m", MINUTE)):
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{unit}")

    if remaining:
        seconds = remaining / SECOND
        parts.append(f"{seconds:g}s")

    return sign + "".join(parts)

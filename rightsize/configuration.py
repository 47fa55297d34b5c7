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

"""Configuration of the rightsize agent.

Settings are read from an optional YAML file and from environment variables prefixed
with `RIGHTSIZE_` (nested sections are separated by a double underscore, for example
`RIGHTSIZE_EXECUTOR__WORKERS=10`). Values passed explicitly take precedence.
"""
from __future__ import annotations

import os
import pathlib
from typing import Any, Optional, Union

import kubernetes_asyncio.config
import kubernetes_asyncio.config.kube_config
import pydantic
import pydantic_settings
import yaml

from rightsize.logging import logger
from rightsize.types import Duration

__all__ = [
    "AbstractBaseConfiguration",
    "AgentConfiguration",
    "ExecutorConfiguration",
    "FeedbackConfiguration",
    "KubernetesConfiguration",
    "TransportConfiguration",
]

ENV_PREFIX = "RIGHTSIZE_"


class AbstractBaseConfiguration(pydantic.BaseModel):
    """
    AbstractBaseConfiguration is the root of the configuration class hierarchy.
    It does not define any concrete configuration model fields but provides a number
    of shared behaviors common to all configuration sections.
    """

    model_config = pydantic.ConfigDict(
        extra="forbid",
        validate_assignment=True,
        validate_default=True,
    )

    def yaml(self, **kwargs: Any) -> str:
        """
        Generate a YAML representation of the configuration.

        Arguments are passed through to the Pydantic `BaseModel.model_dump` method.
        """
        # NOTE: Dump in JSON mode first (durations and paths do not serialize directly to YAML)
        return yaml.dump(self.model_dump(mode="json", **kwargs), sort_keys=False)


class ExecutorConfiguration(AbstractBaseConfiguration):
    """Settings of the automation executor: worker pool, buffering and rollout verification."""

    workers: int = pydantic.Field(
        5, gt=0, description="Number of automations executed concurrently."
    )
    dry_run: bool = pydantic.Field(
        False,
        description="Compute resource changes without applying them to the cluster.",
    )
    buffer_length: int = pydantic.Field(
        1000, gt=0, description="Capacity of the buffer of pending automations."
    )
    buffer_timeout: Duration = pydantic.Field(
        "10s",
        description="Time to wait for room in a full buffer before rejecting an automation.",
    )
    rollout_timeout: Duration = pydantic.Field(
        "15m", description="Time to wait for the pods of a controller to restart."
    )
    poll_interval: Duration = pydantic.Field(
        "15s", description="Interval between pod status checks during a rollout."
    )

    @pydantic.field_validator("buffer_timeout", "rollout_timeout", "poll_interval")
    @classmethod
    def _positive_duration(cls, value: Duration) -> Duration:
        if value.total_seconds() <= 0:
            raise ValueError("duration must be positive")
        return value


class FeedbackConfiguration(AbstractBaseConfiguration):
    """Delivery QoS attributes attached to automation feedback."""

    priority: int = pydantic.Field(10, description="Delivery priority of feedback.")
    expiry: Duration = pydantic.Field(
        "30m", description="Time after which undelivered feedback is discarded."
    )
    expiry_count: int = pydantic.Field(
        0, ge=0, description="Maximum number of queued packets (0 is unbounded)."
    )
    retries: int = pydantic.Field(
        5, ge=0, description="Number of delivery retries before giving up."
    )


class KubernetesConfiguration(AbstractBaseConfiguration):
    kubeconfig: Optional[pydantic.FilePath] = pydantic.Field(
        None,
        description="Path to the kubeconfig file. If `None`, use the default from the environment.",
    )
    context: Optional[str] = pydantic.Field(
        None, description="Name of the kubeconfig context to use."
    )
    timeout: Duration = pydantic.Field(
        "30s", description="Timeout of requests to the Kubernetes API."
    )

    async def load_kubeconfig(self) -> None:
        """
        Asynchronously load the Kubernetes configuration
        """
        config_file = pathlib.Path(
            self.kubeconfig
            or kubernetes_asyncio.config.kube_config.KUBE_CONFIG_DEFAULT_LOCATION
        ).expanduser()
        if config_file.exists():
            logger.info(f"loading kubeconfig from {config_file}")
            await kubernetes_asyncio.config.load_kube_config(
                config_file=str(config_file),
                context=self.context,
            )
        elif os.getenv("KUBERNETES_SERVICE_HOST"):
            logger.info("loading in-cluster Kubernetes configuration")
            kubernetes_asyncio.config.load_incluster_config()
        else:
            raise RuntimeError(
                f"unable to configure Kubernetes client: no kubeconfig file nor in-cluster environment variables found"
            )


class TransportConfiguration(AbstractBaseConfiguration):
    url: Optional[pydantic.AnyHttpUrl] = pydantic.Field(
        None,
        description="URL that feedback envelopes are posted to. Feedback is written to stdout when unset.",
    )
    token: Optional[pydantic.SecretStr] = pydantic.Field(
        None, description="Bearer token for authenticating with the feedback endpoint."
    )
    timeout: Duration = pydantic.Field(
        "20s", description="Timeout of a single feedback delivery request."
    )


class AgentConfiguration(pydantic_settings.BaseSettings):
    """The complete configuration of the agent."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        extra="forbid",
        validate_assignment=True,
    )

    log_level: str = pydantic.Field("INFO", description="Minimum level of log messages.")
    executor: ExecutorConfiguration = pydantic.Field(
        default_factory=ExecutorConfiguration
    )
    feedback: FeedbackConfiguration = pydantic.Field(
        default_factory=FeedbackConfiguration
    )
    kubernetes: KubernetesConfiguration = pydantic.Field(
        default_factory=KubernetesConfiguration
    )
    transport: TransportConfiguration = pydantic.Field(
        default_factory=TransportConfiguration
    )

    @pydantic.field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        try:
            logger.level(level)
        except ValueError as error:
            raise ValueError(f"unsupported log level '{value}'") from error
        return level

    @classmethod
    def load(
        cls, path: Union[str, pathlib.Path, None] = None, **overrides: Any
    ) -> AgentConfiguration:
        """Load the configuration from an optional YAML file, the environment and overrides.

        Overrides are merged per section, e.g. `executor={"dry_run": True}` keeps the
        other executor settings read from the file.
        """
        values: dict[str, Any] = {}
        if path is not None:
            content = yaml.safe_load(pathlib.Path(path).read_text()) or {}
            if not isinstance(content, dict):
                raise ValueError(f"invalid configuration file '{path}': expected a mapping")
            values.update(content)

        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(values.get(key), dict):
                values[key] = {**values[key], **value}
            else:
                values[key] = value

        return cls(**values)

    def yaml(self, **kwargs: Any) -> str:
        """Generate a YAML representation of the configuration."""
        return yaml.dump(self.model_dump(mode="json", **kwargs), sort_keys=False)

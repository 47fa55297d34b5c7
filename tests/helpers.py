from __future__ import annotations

import datetime
import types
from typing import Any, Callable, Optional, Union

from kubernetes_asyncio.client import V1Container, V1ResourceRequirements

from rightsize.errors import ContainerNotFoundError
from rightsize.types import AutomationCommand, ContainerResources, Package

SetResult = Union[tuple[bool, Optional[str]], Exception]


def command(
    id: str = "automation-1",
    kind: str = "Deployment",
    name: str = "web",
    namespace: str = "default",
    container: str = "app",
    requests: Optional[dict[str, Any]] = None,
    limits: Optional[dict[str, Any]] = None,
) -> AutomationCommand:
    return AutomationCommand(
        id=id,
        namespace_name=namespace,
        controller_kind=kind,
        controller_name=name,
        container_name=container,
        container_resources={"requests": requests, "limits": limits},
    )


def container(
    name: str = "app",
    requests: Optional[dict[str, str]] = None,
    limits: Optional[dict[str, str]] = None,
) -> V1Container:
    return V1Container(
        name=name,
        resources=V1ResourceRequirements(requests=requests, limits=limits),
    )


def pod(generate_name: str, phase: str = "Running", name: Optional[str] = None) -> Any:
    return types.SimpleNamespace(
        metadata=types.SimpleNamespace(
            name=name or f"{generate_name}abcde", generate_name=generate_name
        ),
        status=types.SimpleNamespace(phase=phase),
    )


def replica_set(
    name: str,
    replicas: int = 1,
    spec_replicas: Optional[int] = None,
    created: Optional[datetime.datetime] = None,
) -> Any:
    return types.SimpleNamespace(
        metadata=types.SimpleNamespace(
            name=name,
            creation_timestamp=created
            or datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
        ),
        spec=types.SimpleNamespace(
            replicas=replicas if spec_replicas is None else spec_replicas
        ),
        status=types.SimpleNamespace(replicas=replicas),
    )


def stateful_set(name: str, replicas: int = 2, ready_replicas: int = 2) -> Any:
    return types.SimpleNamespace(
        metadata=types.SimpleNamespace(name=name),
        spec=types.SimpleNamespace(replicas=replicas),
        status=types.SimpleNamespace(ready_replicas=ready_replicas),
    )


def daemon_set(name: str, desired: int = 3, number_ready: int = 3) -> Any:
    return types.SimpleNamespace(
        metadata=types.SimpleNamespace(name=name),
        status=types.SimpleNamespace(
            desired_number_scheduled=desired, number_ready=number_ready
        ),
    )


def cron_job(name: str) -> Any:
    return types.SimpleNamespace(metadata=types.SimpleNamespace(name=name))


class FakeCluster:
    """An in-memory cluster implementing discovery, mutation and queries.

    Pods and replica sets can be given as lists or as callables invoked on every
    query, which lets tests model a rollout progressing between polls.
    """

    def __init__(self) -> None:
        self.containers: dict[tuple[str, str, str], V1Container] = {}
        self.set_results: list[SetResult] = []
        self.applied: list[tuple[str, str, str, ContainerResources]] = []
        self.replaced: list[bool] = []
        self.pods: Union[list[Any], Callable[[], list[Any]]] = []
        self.replica_sets: Union[list[Any], Callable[[], list[Any]]] = []
        self.stateful_sets: dict[str, Any] = {}
        self.daemon_sets: dict[str, Any] = {}
        self.cron_jobs: dict[str, Any] = {}
        self.pod_queries = 0
        self.replica_set_queries = 0
        self.query_error: Optional[Exception] = None
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    def add_container(
        self, namespace: str, kind: str, name: str, spec: V1Container
    ) -> None:
        self.containers[(namespace, kind.lower(), name)] = spec

    async def find_container(
        self, namespace: str, kind: str, name: str, container: str
    ) -> V1Container:
        spec = self.containers.get((namespace, kind.lower(), name))
        if spec is None or spec.name != container:
            raise ContainerNotFoundError(
                f'container "{container}" not found in {kind} "{name}"'
            )
        return spec

    async def set_resources(
        self,
        kind: str,
        name: str,
        namespace: str,
        resources: ContainerResources,
        *,
        replace: bool = False,
    ) -> tuple[bool, Optional[str]]:
        result = self.set_results.pop(0) if self.set_results else (False, None)
        if isinstance(result, Exception):
            raise result
        skipped, message = result
        if not skipped and not message:
            self.applied.append((kind, name, namespace, resources))
            self.replaced.append(replace)
        return skipped, message

    async def get_pods(self, namespace: str) -> list[Any]:
        self.pod_queries += 1
        if self.query_error:
            raise self.query_error
        return self.pods() if callable(self.pods) else self.pods

    async def get_replica_sets(self, namespace: str) -> list[Any]:
        self.replica_set_queries += 1
        return self.replica_sets() if callable(self.replica_sets) else self.replica_sets

    async def get_stateful_set(self, namespace: str, name: str) -> Any:
        return self._lookup(self.stateful_sets, "statefulset", name)

    async def get_daemon_set(self, namespace: str, name: str) -> Any:
        return self._lookup(self.daemon_sets, "daemonset", name)

    async def get_cron_job(self, namespace: str, name: str) -> Any:
        return self._lookup(self.cron_jobs, "cronjob", name)

    def _lookup(self, objects: dict[str, Any], kind: str, name: str) -> Any:
        if name not in objects:
            raise LookupError(f'{kind} "{name}" not found')
        return objects[name]


class RecordingTransport:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.packages: list[Package] = []
        self.error = error

    async def pipe(self, package: Package) -> None:
        if self.error:
            raise self.error
        self.packages.append(package)

    @property
    def feedback(self) -> list[Any]:
        return [package.data for package in self.packages]

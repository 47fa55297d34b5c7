import pytest
from kubernetes_asyncio.client import V1Container

from rightsize.resources import merge, original_resources
from rightsize.types import ContainerResources, RequestLimit, ResourceOverride
from tests.helpers import container


class TestOriginalResources:
    def test_reads_millicores_and_mebibytes(self) -> None:
        resources = original_resources(
            container(
                requests={"cpu": "250m", "memory": "256Mi"},
                limits={"cpu": "1", "memory": "1Gi"},
            )
        )
        assert resources == ContainerResources(
            name="app",
            requests=RequestLimit(cpu=250, memory=256),
            limits=RequestLimit(cpu=1000, memory=1024),
        )

    def test_rounds_cpu_up_and_memory_down(self) -> None:
        resources = original_resources(
            container(requests={"cpu": "0.0005", "memory": "1500000"})
        )
        assert resources.requests.cpu == 1
        assert resources.requests.memory == 1

    def test_zero_values_are_absent(self) -> None:
        resources = original_resources(
            container(requests={"cpu": "0", "memory": "0"}, limits={"cpu": "0m"})
        )
        assert resources.requests == RequestLimit()
        assert resources.limits == RequestLimit()

    def test_container_without_resources(self) -> None:
        resources = original_resources(V1Container(name="sidecar"))
        assert resources.name == "sidecar"
        assert resources.requests == RequestLimit()
        assert resources.limits == RequestLimit()

    def test_invalid_quantity(self) -> None:
        with pytest.raises(ValueError):
            original_resources(container(requests={"cpu": "lots"}))


class TestMerge:
    @pytest.fixture
    def original(self) -> ContainerResources:
        return ContainerResources(
            name="app",
            requests=RequestLimit(cpu=100, memory=128),
            limits=RequestLimit(cpu=500, memory=512),
        )

    def test_override_replaces_present_values(self, original) -> None:
        merged = merge(
            original,
            ResourceOverride(
                requests=RequestLimit(cpu=200, memory=256),
                limits=RequestLimit(cpu=1000, memory=1024),
            ),
        )
        assert merged.requests == RequestLimit(cpu=200, memory=256)
        assert merged.limits == RequestLimit(cpu=1000, memory=1024)

    def test_preserves_fields_not_overridden(self, original) -> None:
        merged = merge(original, ResourceOverride(requests=RequestLimit(cpu=200)))
        assert merged.requests == RequestLimit(cpu=200, memory=128)
        assert merged.limits == RequestLimit(cpu=500, memory=512)

    def test_empty_override(self, original) -> None:
        assert merge(original, ResourceOverride()) == original

    def test_absent_original_values_stay_absent(self) -> None:
        merged = merge(
            ContainerResources(name="app"),
            ResourceOverride(limits=RequestLimit(memory=64)),
        )
        assert merged.requests == RequestLimit()
        assert merged.limits == RequestLimit(cpu=None, memory=64)

    def test_zero_override_is_applied(self, original) -> None:
        merged = merge(original, ResourceOverride(limits=RequestLimit(cpu=0)))
        assert merged.limits.cpu == 0

    def test_name_comes_from_original(self, original) -> None:
        assert merge(original, ResourceOverride()).name == "app"

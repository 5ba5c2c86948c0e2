"""Tests for releasing pods by address."""

import pytest

from resalloc_kubernetes.constants import KIND_POD, KIND_PVC
from resalloc_kubernetes.errors import AmbiguousTargetError
from resalloc_kubernetes.provision import ProvisioningController
from resalloc_kubernetes.reclaim import ReclamationResolver
from resalloc_kubernetes.templates import build_request

from .conftest import FakeGateway, make_claim, make_pod, pod_status


class TestRelease:
    """Tests for ReclamationResolver.release."""

    def test_deletes_pod_and_claim(self, gateway):
        gateway.add(make_pod("resalloc-a", ip="10.0.0.5", allocation_id="a"))
        gateway.add(make_claim("resalloc-a-volume", "a"))
        gateway.add(make_claim("resalloc-b-volume", "b"))

        result = ReclamationResolver(gateway).release("10.0.0.5", "default")

        assert result.found
        assert result.pod_name == "resalloc-a"
        assert result.claim_names == ["resalloc-a-volume"]
        assert gateway.objects[KIND_POD] == {}
        assert list(gateway.objects[KIND_PVC]) == [("default", "resalloc-b-volume")]

    def test_pod_deleted_before_claim(self, gateway):
        gateway.add(make_pod("resalloc-a", ip="10.0.0.5", allocation_id="a"))
        gateway.add(make_claim("resalloc-a-volume", "a"))

        ReclamationResolver(gateway).release("10.0.0.5", "default")

        deletes = [c[1] for c in gateway.calls if c[0] == "delete"]
        assert deletes == [KIND_POD, KIND_PVC]

    def test_release_twice_succeeds(self, gateway):
        """Test that a second release of the same address is a no-op."""
        gateway.add(make_pod("resalloc-a", ip="10.0.0.5", allocation_id="a"))
        resolver = ReclamationResolver(gateway)

        first = resolver.release("10.0.0.5", "default")
        second = resolver.release("10.0.0.5", "default")

        assert first.found
        assert not second.found
        assert gateway.count("delete") == 1

    def test_no_match_is_success(self, gateway):
        result = ReclamationResolver(gateway).release("10.0.0.9", "default")
        assert not result.found
        assert result.claim_names == []
        assert gateway.count("delete") == 0

    def test_ambiguous_address_deletes_nothing(self, gateway):
        gateway.add(make_pod("resalloc-a", ip="10.0.0.5", allocation_id="a"))
        gateway.add(make_pod("resalloc-b", ip="10.0.0.5", allocation_id="b"))

        with pytest.raises(AmbiguousTargetError) as exc_info:
            ReclamationResolver(gateway).release("10.0.0.5", "default")

        assert sorted(exc_info.value.pod_names) == ["resalloc-a", "resalloc-b"]
        assert gateway.count("delete") == 0
        assert len(gateway.objects[KIND_POD]) == 2

    def test_unmanaged_pod_ignored(self, gateway):
        gateway.add(make_pod("other", ip="10.0.0.5", managed=False))

        result = ReclamationResolver(gateway).release("10.0.0.5", "default")

        assert not result.found
        assert len(gateway.objects[KIND_POD]) == 1

    def test_exact_address_match(self, gateway):
        """Test that a prefix of another address does not match."""
        gateway.add(make_pod("resalloc-a", ip="10.0.0.50", allocation_id="a"))

        result = ReclamationResolver(gateway).release("10.0.0.5", "default")

        assert not result.found
        assert gateway.count("delete") == 0

    def test_other_namespace_untouched(self, gateway):
        gateway.add(make_pod("resalloc-a", ip="10.0.0.5", allocation_id="a", namespace="other"))

        result = ReclamationResolver(gateway).release("10.0.0.5", "default")

        assert not result.found
        assert len(gateway.objects[KIND_POD]) == 1

    def test_pod_without_allocation_id(self, gateway):
        gateway.add(make_pod("resalloc-old", ip="10.0.0.5"))

        result = ReclamationResolver(gateway).release("10.0.0.5", "default")

        assert result.pod_name == "resalloc-old"
        assert result.claim_names == []
        assert gateway.count("list") == 1


class TestAllocateThenRelease:
    """Full allocation and release against a simulated cluster."""

    def test_round_trip(self):
        gateway = FakeGateway(
            status_script=[
                (0.2, pod_status()),
                (1.0, pod_status(ready=True, ip="192.168.1.10", phase="Running")),
            ]
        )
        gateway.add(make_pod("resalloc-other", ip="192.168.1.11", allocation_id="other"))

        allocation = ProvisioningController(gateway).allocate(
            build_request(image="x:latest", cpu="1", memory="1Gi", timeout=5)
        )
        assert allocation.address == "192.168.1.10"

        result = ReclamationResolver(gateway).release("192.168.1.10", "default")

        assert result.pod_name == allocation.pod_name
        deletes = [c for c in gateway.calls if c[0] == "delete"]
        assert deletes == [("delete", KIND_POD, allocation.pod_name)]
        assert list(gateway.objects[KIND_POD]) == [("default", "resalloc-other")]

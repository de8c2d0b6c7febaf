"""
Tests for the partition classifier
"""

import pytest

from uor_kernel.config import Settings
from uor_kernel.errors import ClosureError, ValidationError
from uor_kernel.partition import (ClosureMode, PartitionComponent, classify,
                                  compute_partition, resolve)
from uor_kernel.ring import UOR


class TestClassify:
    @pytest.mark.parametrize("value, component", [
        (0, PartitionComponent.EXTERIOR),
        (1, PartitionComponent.UNIT),
        (255, PartitionComponent.UNIT),
        (128, PartitionComponent.EXTERIOR),
        (3, PartitionComponent.IRREDUCIBLE),
        (4, PartitionComponent.REDUCIBLE),
    ])
    def test_q0_examples(self, value, component):
        assert classify(value, 8).component == component

    def test_reason_is_present(self):
        assert "zero" in classify(0, 8).reason

    def test_sixteen_bit_midpoint(self):
        assert classify(32768, 16).component == PartitionComponent.EXTERIOR
        assert classify(65535, 16).component == PartitionComponent.UNIT

    def test_out_of_range(self):
        with pytest.raises(ValidationError):
            classify(256, 8)
        with pytest.raises(ValidationError):
            classify(-1, 8)

    def test_to_dict(self):
        assert classify(1, 8).to_dict()["component"] == "partition:UnitSet"


class TestComputePartition:
    def test_sizes_sum_to_cycle(self, q0):
        result = compute_partition(q0)
        assert result.total == 256
        assert len(result.units) == 2
        assert len(result.exterior) == 2
        assert len(result.irreducible) == 126
        assert len(result.reducible) == 126

    def test_sets_are_disjoint(self, q0):
        result = compute_partition(q0)
        sets = [set(result.units), set(result.exterior), set(result.irreducible), set(result.reducible)]
        union = set().union(*sets)
        assert len(union) == sum(len(s) for s in sets) == 256

    def test_fixed_point_closes(self, q0):
        result = compute_partition(q0, mode=ClosureMode.FIXED_POINT)
        assert result.closure_verified
        assert result.closure_errors == []

    def test_graph_closed_full_ring(self, q0):
        result = compute_partition(q0, mode=ClosureMode.GRAPH_CLOSED)
        assert result.closure_verified

    def test_graph_closed_reports_dangling_edges(self, q0):
        result = compute_partition(q0, seeds=[3, 5], mode=ClosureMode.GRAPH_CLOSED)
        assert not result.closure_verified
        assert "neg(3)=253: not in partition set" in result.closure_errors
        assert "bnot(5)=250: not in partition set" in result.closure_errors

    def test_graph_closed_default_seeds_beyond_ceiling(self):
        ring = UOR(1, settings=Settings(enumeration_ceiling=256))
        with pytest.raises(ClosureError):
            compute_partition(ring, mode=ClosureMode.GRAPH_CLOSED)

    def test_default_seeds_capped(self):
        ring = UOR(1, settings=Settings(enumeration_ceiling=256))
        assert compute_partition(ring).total == 256

    def test_duplicate_seeds_counted_once(self, q0):
        assert compute_partition(q0, seeds=[4, 4, 4]).total == 1

    def test_to_dict(self, q0):
        d = compute_partition(q0).to_dict()
        assert d["partition:cardinalities"]["partition:UnitSet"] == 2
        assert d["closureMode"] == "oneStep"
        assert d["partition:density"] == pytest.approx(126 / 256)


class TestResolve:
    def test_normalizes_and_traces(self, q0):
        r = resolve(q0, 300)
        assert r.canonical_iri == q0.iri(44)
        assert r.classification.component == PartitionComponent.REDUCIBLE
        assert len(r.trace) == 4
        assert r.trace[-1].endswith("ok")

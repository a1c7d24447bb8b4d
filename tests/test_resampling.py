"""Tests for stratified bootstrap and jackknife index generation."""

from __future__ import annotations

import numpy as np
import pytest

from hurdle_bootstrap.resampling import (
    jackknife_indices,
    replicate_generators,
    replicate_seeds,
    stratified_bootstrap_indices,
)

_SEED = 42


@pytest.fixture()
def strata():
    rng = np.random.default_rng(_SEED)
    return rng.permutation(np.array([0] * 37 + [1] * 63))


class TestStratifiedBootstrap:
    def test_stratum_sizes_preserved(self, strata) -> None:
        for rng in replicate_generators(_SEED, 25):
            idx = stratified_bootstrap_indices(strata, rng)
            assert len(idx) == len(strata)
            assert np.sum(strata[idx] == 0) == 37
            assert np.sum(strata[idx] == 1) == 63

    def test_draws_with_replacement(self, strata) -> None:
        idx = stratified_bootstrap_indices(strata, np.random.default_rng(_SEED))
        assert len(np.unique(idx)) < len(idx)

    def test_indices_in_range(self, strata) -> None:
        idx = stratified_bootstrap_indices(strata, np.random.default_rng(_SEED))
        assert idx.dtype == np.intp
        assert idx.min() >= 0 and idx.max() < len(strata)

    def test_string_labels(self) -> None:
        labels = np.array(["b", "a", "b", "b", "a"])
        idx = stratified_bootstrap_indices(labels, np.random.default_rng(0))
        assert sorted(labels[idx]) == ["a", "a", "b", "b", "b"]

    def test_single_record_stratum(self) -> None:
        labels = np.array([0, 1, 1, 1])
        idx = stratified_bootstrap_indices(labels, np.random.default_rng(0))
        assert idx[0] == 0


class TestReplicateSeeds:
    def test_deterministic(self, strata) -> None:
        a = [stratified_bootstrap_indices(strata, g) for g in replicate_generators(7, 5)]
        b = [stratified_bootstrap_indices(strata, g) for g in replicate_generators(7, 5)]
        for x, y in zip(a, b):
            np.testing.assert_array_equal(x, y)

    def test_replicates_differ(self, strata) -> None:
        gens = replicate_generators(7, 2)
        a = stratified_bootstrap_indices(strata, gens[0])
        b = stratified_bootstrap_indices(strata, gens[1])
        assert not np.array_equal(a, b)

    def test_prefix_stable(self, strata) -> None:
        """Replicate b does not depend on how many replicates are requested."""
        short = replicate_seeds(7, 3)
        long = replicate_seeds(7, 10)
        for s, t in zip(short, long):
            assert np.random.default_rng(s).random() == np.random.default_rng(t).random()

    def test_different_seeds_differ(self, strata) -> None:
        a = stratified_bootstrap_indices(strata, replicate_generators(1, 1)[0])
        b = stratified_bootstrap_indices(strata, replicate_generators(2, 1)[0])
        assert not np.array_equal(a, b)


class TestJackknife:
    def test_leave_one_out(self) -> None:
        sets = list(jackknife_indices(5))
        assert len(sets) == 5
        np.testing.assert_array_equal(sets[0], [1, 2, 3, 4])
        np.testing.assert_array_equal(sets[2], [0, 1, 3, 4])
        np.testing.assert_array_equal(sets[4], [0, 1, 2, 3])

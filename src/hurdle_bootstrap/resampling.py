"""Index generation for the stratified bootstrap and the jackknife.

Stratified bootstrap
    For each intervention stratum with *n_s* records, draw *n_s* row
    indices with replacement **within** that stratum, then concatenate
    the strata in level order.  Every replicate therefore keeps the
    observed arm sizes exactly, matching ``boot(..., strata=)`` in R.

Per-replicate generators
    Replicate *b* draws from its own ``numpy.random.Generator``,
    seeded by the *b*-th child of ``SeedSequence(random_state)``.
    The draws of a replicate therefore depend only on the seed and
    ``b``, never on which worker runs it or in what order.

Jackknife
    Leave-one-out index arrays used for the BCa acceleration.
"""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np


def stratified_bootstrap_indices(
    strata: np.ndarray, rng: np.random.Generator
) -> np.ndarray:
    """Draw one stratified bootstrap replicate.

    Args:
        strata: 1-D array of stratum labels, length *n*.
        rng: Generator owned by this replicate.

    Returns:
        1-D ``intp`` array of *n* row positions.  Positions drawn for
        stratum *s* are drawn only from records whose label is *s*.
    """
    strata = np.asarray(strata)
    parts: list[np.ndarray] = []
    for label in np.unique(strata):
        s_idx = np.flatnonzero(strata == label)
        parts.append(rng.choice(s_idx, size=len(s_idx), replace=True))
    return np.concatenate(parts).astype(np.intp, copy=False)


def replicate_seeds(
    random_state: int | None, n_replicates: int
) -> list[np.random.SeedSequence]:
    """Spawn one independent ``SeedSequence`` per replicate."""
    return np.random.SeedSequence(random_state).spawn(n_replicates)


def replicate_generators(
    random_state: int | None, n_replicates: int
) -> list[np.random.Generator]:
    """One independent ``Generator`` per replicate, in replicate order."""
    return [
        np.random.default_rng(seed)
        for seed in replicate_seeds(random_state, n_replicates)
    ]


def jackknife_indices(n: int) -> Iterator[np.ndarray]:
    """Yield the *n* leave-one-out index arrays ``[0..i-1, i+1..n-1]``."""
    for i in range(n):
        yield np.concatenate([np.arange(i), np.arange(i + 1, n)])


__all__ = [
    "jackknife_indices",
    "replicate_generators",
    "replicate_seeds",
    "stratified_bootstrap_indices",
]

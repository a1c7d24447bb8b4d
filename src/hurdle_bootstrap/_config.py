"""Run configuration for the hurdle bootstrap.

:class:`BootstrapConfig` is the single immutable object that carries
every user-tunable setting of a run: replicate count, confidence
level, interval method, seed, and optimiser controls.  It is created
once and passed explicitly into the pipeline.

The only process-wide setting is the default joblib worker count,
which controls how replicates are scheduled but never what they
compute.  Resolution order (first match wins):

    1. ``BootstrapConfig(n_jobs=...)`` for a single run.
    2. Programmatic override via :func:`set_n_jobs`.
    3. The ``HURDLE_BOOTSTRAP_N_JOBS`` environment variable.
    4. ``1`` (sequential).

Examples:
    Use every core for all runs from the shell::

        export HURDLE_BOOTSTRAP_N_JOBS=-1

    Or programmatically::

        import hurdle_bootstrap
        hurdle_bootstrap.set_n_jobs(4)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from .exceptions import ConfigurationError

# Accepted spellings for the two interval methods.  "perc" and "bca"
# are the names used by R's boot.ci.
_CI_METHODS = {
    "percentile": "percentile",
    "perc": "percentile",
    "bca": "bca",
}

_OPTIMIZERS = {"bfgs", "newton", "lbfgs", "nm", "cg", "powell"}

# Sentinel indicating "no programmatic override has been set".
_n_jobs_override: int | None = None


def get_n_jobs() -> int:
    """Return the default number of joblib workers.

    Returns:
        ``-1`` for all cores, otherwise a positive worker count.

    Raises:
        ConfigurationError: If ``HURDLE_BOOTSTRAP_N_JOBS`` is set to a
            value that is not an integer, or to ``0`` / below ``-1``.
    """
    if _n_jobs_override is not None:
        return _n_jobs_override

    env = os.environ.get("HURDLE_BOOTSTRAP_N_JOBS", "").strip()
    if env:
        try:
            n_jobs = int(env)
        except ValueError:
            raise ConfigurationError(
                f"HURDLE_BOOTSTRAP_N_JOBS must be an integer, got {env!r}."
            ) from None
        return _validate_n_jobs(n_jobs)

    return 1


def set_n_jobs(n_jobs: int | None) -> None:
    """Override the default joblib worker count.

    Args:
        n_jobs: Worker count (``-1`` for all cores), or ``None`` to
            restore the default resolution order.

    Raises:
        ConfigurationError: If *n_jobs* is ``0`` or below ``-1``.
    """
    global _n_jobs_override
    _n_jobs_override = None if n_jobs is None else _validate_n_jobs(n_jobs)


def _validate_n_jobs(n_jobs: int) -> int:
    if n_jobs == 0 or n_jobs < -1:
        raise ConfigurationError(
            f"n_jobs must be a positive integer or -1, got {n_jobs}."
        )
    return n_jobs


def resolve_ci_method(name: str) -> str:
    """Map an interval-method name to ``"percentile"`` or ``"bca"``.

    Raises:
        ConfigurationError: If *name* is not a recognised method.
    """
    key = str(name).strip().lower()
    if key not in _CI_METHODS:
        raise ConfigurationError(
            f"Unknown interval method {name!r}. "
            f"Choose from: {sorted(_CI_METHODS)}."
        )
    return _CI_METHODS[key]


@dataclass(frozen=True)
class BootstrapConfig:
    """Immutable settings for one bootstrap run.

    Attributes:
        n_bootstrap: Number of stratified bootstrap replicates R.
        confidence_level: Nominal interval coverage, in ``(0, 1)``.
        ci_method: ``"percentile"`` (alias ``"perc"``) or ``"bca"``.
            Normalised on construction.
        random_state: Seed for the replicate draws.  ``None`` draws
            fresh entropy, so runs are not reproducible.
        max_iter: Iteration cap for both sub-model optimisers.
        optimizer: statsmodels optimiser name for the positive part.
        n_jobs: joblib thread count; ``None`` defers to
            :func:`get_n_jobs`.
    """

    n_bootstrap: int = 5_000
    confidence_level: float = 0.95
    ci_method: str = "percentile"
    random_state: int | None = None
    max_iter: int = 1_000
    optimizer: str = "bfgs"
    n_jobs: int | None = None

    def __post_init__(self) -> None:
        if int(self.n_bootstrap) != self.n_bootstrap or self.n_bootstrap < 1:
            raise ConfigurationError(
                f"n_bootstrap must be a positive integer, got {self.n_bootstrap!r}."
            )
        if not 0.0 < self.confidence_level < 1.0:
            raise ConfigurationError(
                "confidence_level must lie strictly between 0 and 1, "
                f"got {self.confidence_level!r}."
            )
        if int(self.max_iter) != self.max_iter or self.max_iter < 1:
            raise ConfigurationError(
                f"max_iter must be a positive integer, got {self.max_iter!r}."
            )
        if self.optimizer not in _OPTIMIZERS:
            raise ConfigurationError(
                f"Unknown optimizer {self.optimizer!r}. "
                f"Choose from: {sorted(_OPTIMIZERS)}."
            )
        if self.n_jobs is not None:
            _validate_n_jobs(self.n_jobs)
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "ci_method", resolve_ci_method(self.ci_method))

    @property
    def alpha(self) -> float:
        """Two-sided miscoverage level ``1 - confidence_level``."""
        return 1.0 - self.confidence_level

    @property
    def resolved_n_jobs(self) -> int:
        """Worker count after applying the process default."""
        return self.n_jobs if self.n_jobs is not None else get_n_jobs()

    def replace(self, **changes: object) -> BootstrapConfig:
        """Return a copy with *changes* applied (and re-validated)."""
        return replace(self, **changes)


__all__ = [
    "BootstrapConfig",
    "get_n_jobs",
    "resolve_ci_method",
    "set_n_jobs",
]

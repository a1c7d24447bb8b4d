"""Error taxonomy for the hurdle bootstrap pipeline.

Two kinds of failure are distinguished:

* **Fatal** — :class:`ConfigurationError` (raised before any fitting)
  and :class:`DegenerateDistributionError` (raised after resampling
  when too few replicates survived to form an interval).  These
  propagate to the caller.
* **Per-replicate** — :class:`FitFailure` and :class:`UndefinedEffect`,
  both subclasses of :class:`ReplicateFailure`.  The resampling engine
  catches them at the single-replicate boundary and records the
  replicate as failed; they never abort a run.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid model specification, dataset schema, or run settings."""


class ReplicateFailure(RuntimeError):
    """Base class for errors that invalidate a single replicate."""


class FitFailure(ReplicateFailure):
    """The two-part model could not be fitted to a sample.

    Raised when the sample lacks zero or positive outcomes, a design
    matrix is rank deficient, or an optimiser fails to converge.
    """


class UndefinedEffect(ReplicateFailure):
    """The ratio effect is undefined (zero or non-finite control mean)."""


class DegenerateDistributionError(RuntimeError):
    """Too few successful replicates to derive an interval."""


__all__ = [
    "ConfigurationError",
    "DegenerateDistributionError",
    "FitFailure",
    "ReplicateFailure",
    "UndefinedEffect",
]

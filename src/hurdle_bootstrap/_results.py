"""Typed result objects for the hurdle bootstrap.

Frozen dataclasses that provide:

* **Attribute access**: ``result.point_estimate``, ``result.ci_lower``.
* **Dict-like access**: ``result["p_value"]``, ``result.get("key")``,
  ``"key" in result`` for consumers that prefer bracket syntax.
* **Serialisation**: ``.to_dict()`` returns a plain ``dict[str, Any]``
  with all NumPy types converted to native Python.

Three types describe a run from the inside out:

* :class:`ReplicateResult`: outcome of one bootstrap replicate, either
  a statistic or the reason it failed.
* :class:`BootstrapDistribution`: the observed statistic plus every
  replicate, in replicate order.
* :class:`InferenceResult`: the final point estimate, interval and
  p-value.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

import numpy as np
import pandas as pd

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy scalars/arrays to Python-native types."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    Supports ``result["key"]`` (``KeyError`` on miss),
    ``result.get(key, default)`` and ``"key" in result``.

    Subclasses may override ``_SERIALIZERS`` to register conversion
    functions for non-primitive fields, and ``_EXCLUDE_FROM_DICT`` to
    leave bulky fields out of :meth:`to_dict`.
    """

    _SERIALIZERS: ClassVar[dict[str, Any]] = {}

    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset()

    def __getitem__(self, key: str) -> Any:
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain, JSON-serialisable dictionary."""
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            val = getattr(self, f.name)
            if f.name in self._SERIALIZERS:
                val = self._SERIALIZERS[f.name](val)
            result[f.name] = _numpy_to_python(val)
        return result


# ------------------------------------------------------------------ #
# ReplicateResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class ReplicateResult(_DictAccessMixin):
    """Outcome of one bootstrap (or jackknife) replicate.

    Exactly one of ``statistic`` / ``error`` is set.
    """

    index: int
    """Replicate number ``b`` (0-based)."""

    statistic: float | None = None
    """Effect ratio τ_b, or ``None`` when the replicate failed."""

    error: str | None = None
    """Failure reason, or ``None`` when the replicate succeeded."""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, index: int, statistic: float) -> ReplicateResult:
        return cls(index=index, statistic=float(statistic))

    @classmethod
    def failure(cls, index: int, error: BaseException | str) -> ReplicateResult:
        return cls(index=index, error=str(error))


# ------------------------------------------------------------------ #
# BootstrapDistribution
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class BootstrapDistribution(_DictAccessMixin):
    """Observed statistic and the ordered replicate outcomes."""

    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"replicates"})

    observed: float
    """τ₀ computed on the full dataset."""

    replicates: tuple[ReplicateResult, ...]
    """One entry per replicate, ordered by replicate number."""

    statistics: np.ndarray = field(init=False, repr=False, compare=False)
    """Successful τ_b values in replicate order."""

    failure_reasons: dict[str, int] = field(init=False, compare=False)
    """Failure message → number of replicates that failed with it."""

    def __post_init__(self) -> None:
        stats = np.array(
            [r.statistic for r in self.replicates if r.ok], dtype=float
        )
        tally = Counter(r.error for r in self.replicates if not r.ok)
        object.__setattr__(self, "statistics", stats)
        object.__setattr__(self, "failure_reasons", dict(tally.most_common()))

    @property
    def n_replicates(self) -> int:
        return len(self.replicates)

    @property
    def n_successful(self) -> int:
        return len(self.statistics)

    @property
    def n_failed(self) -> int:
        return self.n_replicates - self.n_successful


# ------------------------------------------------------------------ #
# InferenceResult
# ------------------------------------------------------------------ #

_SERIES_LABELS = {
    "point_estimate": "Point estimate",
    "ci_lower": "Lower bound",
    "ci_upper": "Upper bound",
    "p_value": "P-value",
}


@dataclass(frozen=True)
class InferenceResult(_DictAccessMixin):
    """Point estimate, confidence interval and p-value of the effect.

    All fields are accessible both as attributes
    (``result.ci_lower``) and via dict syntax (``result["ci_lower"]``).
    The bootstrap distribution rides along for diagnostics but is left
    out of :meth:`to_dict`.
    """

    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"distribution"})

    # ---- Inference -------------------------------------------------
    point_estimate: float
    """τ₀: ratio of mean predicted outcomes, treated over control."""

    ci_lower: float
    """Lower confidence bound."""

    ci_upper: float
    """Upper confidence bound."""

    p_value: float
    """Approximate bootstrap p-value for H₀: τ = 1."""

    # ---- Metadata --------------------------------------------------
    ci_method: str
    """``"percentile"`` or ``"bca"``."""

    confidence_level: float
    """Nominal coverage, e.g. ``0.95``."""

    n_bootstrap: int
    """Replicates requested (R)."""

    n_successful: int
    """Replicates that produced a statistic."""

    n_failed: int
    """Replicates that failed; reasons in ``failure_reasons``."""

    failure_reasons: dict[str, int] = field(compare=False)
    """Failure message → count."""

    family: str
    """Positive-part family name."""

    formula: str
    """R-style rendering of the fitted model."""

    levels: tuple[Any, Any]
    """``(control, treated)`` intervention levels."""

    # ---- Diagnostics (not serialised) ------------------------------
    distribution: BootstrapDistribution | None = field(
        default=None, repr=False, compare=False
    )

    def to_series(self) -> pd.Series:
        """The four headline numbers as a labelled ``pd.Series``."""
        return pd.Series(
            {label: float(getattr(self, key)) for key, label in _SERIES_LABELS.items()},
            name="estimate",
        )


__all__ = [
    "BootstrapDistribution",
    "InferenceResult",
    "ReplicateResult",
]

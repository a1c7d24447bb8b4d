"""Model specification, dataset validation, and design matrices.

A :class:`ModelSpecification` is the structured replacement for an
R-style hurdle formula ``Outcome ~ count terms | zero terms``: two
explicit tuples of patsy term strings plus the positive-part family
name.  It is immutable and shared read-only by every replicate.

:meth:`ModelSpecification.prepare` checks the specification against a
dataset *before* any fitting (missing columns, missing values, outcome
domain, two-level intervention) and returns a copy whose intervention
column is a ``pd.Categorical`` with the level order fixed as
``(control, treated)``.

:class:`HurdleDesign` holds the patsy ``DesignInfo`` of each sub-model,
built once from the full dataset.  Every resample and counterfactual
copy is encoded through the same ``DesignInfo``, so column order and
categorical coding are identical across replicates even when a
resample happens to miss a covariate level.
"""

from __future__ import annotations

import ast
import logging
import warnings
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
import patsy

from ._compat import DataFrameLike, _ensure_pandas_df
from .exceptions import ConfigurationError
from .families import resolve_family

logger = logging.getLogger(__name__)


def _as_terms(value: Any, name: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    try:
        terms = tuple(str(v).strip() for v in value)
    except TypeError:
        raise ConfigurationError(
            f"{name} must be a list of predictor names, got {type(value).__name__}."
        ) from None
    if any(not t for t in terms):
        raise ConfigurationError(f"{name} contains an empty predictor name.")
    return terms


def _term_variables(term: str) -> set[str]:
    """Return the bare variable names a patsy term refers to.

    ``"Age:C(Sex)"`` → ``{"Age", "Sex"}``; ``"np.log(Age)"`` →
    ``{"Age"}``.  Names in function position (``C``, ``np.log``) are
    not variables.
    """
    # patsy's ":" interaction operator is not Python; "*" parses the
    # same operands.
    try:
        tree = ast.parse(term.replace(":", "*"), mode="eval")
    except SyntaxError:
        raise ConfigurationError(
            f"Predictor term {term!r} is not a valid expression."
        ) from None
    callee_ids: set[int] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Call):
            callee_ids.update(id(n) for n in ast.walk(node.func))
    return {
        node.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Name) and id(node) not in callee_ids
    }


@dataclass(frozen=True)
class ModelSpecification:
    """Immutable description of the two-part model.

    Attributes:
        count_predictors: Terms of the positive (count) sub-model.
        zero_predictors: Terms of the zero/non-zero (logit) sub-model.
        family: Positive-part family: ``"poisson"``, ``"negbin"``
            (alias ``"negative_binomial"``) or ``"geometric"``.
        outcome: Name of the count outcome column.
        intervention: Name of the binary intervention column.
        intervention_levels: Optional ``(control, treated)`` order.
            When omitted, the categories of a categorical column are
            used, else the sorted distinct values.

    Terms are patsy expressions, so interactions (``"Age:Sex"``) and
    transforms (``"C(Region)"``) are allowed.  An empty tuple gives an
    intercept-only sub-model.
    """

    count_predictors: tuple[str, ...]
    zero_predictors: tuple[str, ...]
    family: str = "negbin"
    outcome: str = "Outcome"
    intervention: str = "Intervention"
    intervention_levels: tuple[Any, Any] | None = None
    _family_name: str = field(init=False, repr=False, compare=False, default="")

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "count_predictors",
            _as_terms(self.count_predictors, "count_predictors"),
        )
        object.__setattr__(
            self,
            "zero_predictors",
            _as_terms(self.zero_predictors, "zero_predictors"),
        )
        # Fail fast on unsupported families.
        object.__setattr__(self, "_family_name", resolve_family(self.family).name)
        if self.intervention_levels is not None:
            levels = tuple(self.intervention_levels)
            if len(levels) != 2 or levels[0] == levels[1]:
                raise ConfigurationError(
                    "intervention_levels must be two distinct values "
                    f"(control, treated), got {self.intervention_levels!r}."
                )
            object.__setattr__(self, "intervention_levels", levels)

    # ---- Formula rendering -----------------------------------------

    @property
    def family_name(self) -> str:
        """Canonical family name (aliases resolved)."""
        return self._family_name

    @property
    def count_rhs(self) -> str:
        """patsy right-hand side of the count sub-model."""
        return " + ".join(self.count_predictors) or "1"

    @property
    def zero_rhs(self) -> str:
        """patsy right-hand side of the zero sub-model."""
        return " + ".join(self.zero_predictors) or "1"

    @property
    def formula(self) -> str:
        """R-style hurdle formula, e.g. ``Outcome ~ Age + Sex | Age``."""
        return f"{self.outcome} ~ {self.count_rhs} | {self.zero_rhs}"

    def referenced_columns(self) -> set[str]:
        """Every dataset column the specification needs."""
        cols = {self.outcome, self.intervention}
        for term in self.count_predictors + self.zero_predictors:
            cols |= _term_variables(term)
        return cols

    # ---- Validation ------------------------------------------------

    def prepare(self, data: DataFrameLike) -> pd.DataFrame:
        """Validate *data* against this specification.

        Returns:
            A copy of *data* with the intervention column recoded as
            a two-level ``pd.Categorical`` (control first) and a fresh
            ``RangeIndex``.

        Raises:
            ConfigurationError: On missing columns, missing values,
                invalid outcomes, or an intervention that does not
                have exactly two observed levels.
        """
        data = _ensure_pandas_df(data, name="data")
        if len(data) == 0:
            raise ConfigurationError("data must contain at least one observation.")

        missing = sorted(self.referenced_columns() - set(data.columns))
        if missing:
            raise ConfigurationError(
                f"Columns referenced by the model are absent from the data: "
                f"{missing}.  Available columns: {sorted(map(str, data.columns))}."
            )

        used = sorted(self.referenced_columns())
        n_missing = data[used].isna().sum()
        if n_missing.any():
            bad = {str(k): int(v) for k, v in n_missing.items() if v}
            raise ConfigurationError(
                f"Missing values in model columns (count per column): {bad}."
            )

        family = resolve_family(self.family)
        family.validate_y(np.asarray(data[self.outcome]))

        levels = self._resolve_levels(data[self.intervention])
        prepared = data.reset_index(drop=True).copy()
        prepared[self.intervention] = pd.Categorical(
            prepared[self.intervention], categories=list(levels)
        )

        self._check_intervention_terms()
        logger.debug(
            "Prepared %d records for %s (levels: control=%r, treated=%r)",
            len(prepared),
            self.formula,
            levels[0],
            levels[1],
        )
        return prepared

    def _resolve_levels(self, column: pd.Series) -> tuple[Any, Any]:
        if self.intervention_levels is not None:
            levels = self.intervention_levels
        elif isinstance(column.dtype, pd.CategoricalDtype):
            # Unused categories are dropped so that a column declared
            # with extra levels still resolves to the observed pair.
            levels = tuple(
                c for c in column.cat.categories if (column == c).any()
            )
        else:
            levels = tuple(sorted(pd.unique(column)))

        if len(levels) != 2:
            raise ConfigurationError(
                f"'{self.intervention}' must have exactly two levels, "
                f"found {len(levels)}: {list(levels)}."
            )
        unknown = set(pd.unique(column)) - set(levels)
        if unknown:
            raise ConfigurationError(
                f"'{self.intervention}' contains values outside the declared "
                f"levels {list(levels)}: {sorted(map(str, unknown))}."
            )
        counts = column.value_counts()
        empty = [lvl for lvl in levels if counts.get(lvl, 0) == 0]
        if empty:
            raise ConfigurationError(
                f"'{self.intervention}' level(s) {empty} have no observations; "
                "both arms are required."
            )
        return levels[0], levels[1]

    def _check_intervention_terms(self) -> None:
        terms = self.count_predictors + self.zero_predictors
        term_vars = [_term_variables(t) for t in terms]
        if not any(self.intervention in v for v in term_vars):
            warnings.warn(
                f"'{self.intervention}' appears in neither predictor list; "
                "the estimated effect ratio is 1 by construction.",
                UserWarning,
                stacklevel=3,
            )
        interacting = [
            t for t, v in zip(terms, term_vars) if self.intervention in v and len(v) > 1
        ]
        if interacting:
            warnings.warn(
                f"Terms {interacting} combine '{self.intervention}' with other "
                "predictors; the effect is averaged over the covariate "
                "distribution, but the intervention is assumed not to interact.",
                UserWarning,
                stacklevel=3,
            )


@dataclass(frozen=True)
class HurdleDesign:
    """Fixed patsy encodings of both sub-models.

    Build with :meth:`from_data` on the prepared full dataset; then
    encode any sample or counterfactual copy with
    :meth:`count_matrix` / :meth:`zero_matrix`.
    """

    spec: ModelSpecification
    levels: tuple[Any, Any]
    count_info: patsy.DesignInfo
    zero_info: patsy.DesignInfo

    @classmethod
    def from_data(cls, spec: ModelSpecification, data: pd.DataFrame) -> HurdleDesign:
        """Learn both design encodings from the prepared dataset.

        Raises:
            ConfigurationError: If patsy cannot evaluate a term.
        """
        try:
            count_info = patsy.dmatrix(
                spec.count_rhs, data, NA_action="raise"
            ).design_info
            zero_info = patsy.dmatrix(spec.zero_rhs, data, NA_action="raise").design_info
        except patsy.PatsyError as exc:
            raise ConfigurationError(
                f"Could not build design matrices for {spec.formula!r}: {exc}"
            ) from exc
        levels = tuple(data[spec.intervention].cat.categories)
        return cls(spec, (levels[0], levels[1]), count_info, zero_info)

    @property
    def count_names(self) -> list[str]:
        return list(self.count_info.column_names)

    @property
    def zero_names(self) -> list[str]:
        return list(self.zero_info.column_names)

    def count_matrix(self, data: pd.DataFrame) -> np.ndarray:
        return self._encode(self.count_info, data)

    def zero_matrix(self, data: pd.DataFrame) -> np.ndarray:
        return self._encode(self.zero_info, data)

    def outcome(self, data: pd.DataFrame) -> np.ndarray:
        return np.asarray(data[self.spec.outcome], dtype=float)

    def strata(self, data: pd.DataFrame) -> np.ndarray:
        """Integer intervention codes: 0 = control, 1 = treated."""
        return np.asarray(data[self.spec.intervention].cat.codes, dtype=np.intp)

    def with_intervention(self, data: pd.DataFrame, level: Any) -> pd.DataFrame:
        """Copy of *data* with every record's intervention set to *level*."""
        if level not in self.levels:
            raise ConfigurationError(
                f"{level!r} is not an intervention level; choose from {list(self.levels)}."
            )
        forced = pd.Categorical([level] * len(data), categories=list(self.levels))
        return data.assign(**{self.spec.intervention: forced})

    @staticmethod
    def _encode(info: patsy.DesignInfo, data: pd.DataFrame) -> np.ndarray:
        (matrix,) = patsy.build_design_matrices([info], data, NA_action="raise")
        return np.asarray(matrix, dtype=float)


__all__ = ["HurdleDesign", "ModelSpecification"]

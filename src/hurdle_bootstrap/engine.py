"""Bootstrap engine: validation, observed fit and replicate loops.

The :class:`BootstrapEngine` centralises everything a run needs:

1. **Validation**: check the dataset against the
   :class:`~.specification.ModelSpecification` and fix the
   intervention level order.
2. **Design**: learn the patsy encodings of both sub-models once,
   from the full dataset.
3. **Observed fit**: fit the hurdle model to the full dataset and
   compute τ₀.  A failure here is fatal and propagates.
4. **Replicates**: :meth:`run` refits on R stratified resamples.
   Each replicate's failure is recorded, not raised.
5. **Jackknife**: :meth:`jackknife` refits leaving out one record at
   a time, for the BCa acceleration.

The engine is immutable after construction.  Replicates share only
read-only state (prepared data, design, strata) and each one draws
from its own seeded generator, so ``n_jobs`` changes the wall time
and never the numbers.
"""

from __future__ import annotations

import logging
import warnings
from collections import Counter

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from ._compat import DataFrameLike
from ._config import BootstrapConfig
from ._results import BootstrapDistribution, ReplicateResult
from .effects import counterfactual_predictions, effect_ratio
from .exceptions import ReplicateFailure
from .hurdle import HurdleFit, _suppress_sm_warnings, fit_hurdle
from .resampling import (
    jackknife_indices,
    replicate_generators,
    stratified_bootstrap_indices,
)
from .specification import HurdleDesign, ModelSpecification

logger = logging.getLogger(__name__)


class BootstrapEngine:
    """Owns the prepared data and computes the effect on any resample.

    Attributes:
        spec: The model specification.
        config: The run configuration.
        data: Validated copy of the input with a categorical
            intervention column.
        design: Fixed design encodings of both sub-models.
        observed_fit: Hurdle fit on the full dataset.
        predictions: Counterfactual prediction table on the full
            dataset (index ``Case``, one column per level).
        observed: τ₀.

    Raises:
        ConfigurationError: If the data or specification is invalid.
        FitFailure: If the full-data fit fails.
        UndefinedEffect: If τ₀ is not a finite ratio.
    """

    def __init__(
        self,
        data: DataFrameLike,
        spec: ModelSpecification,
        config: BootstrapConfig | None = None,
    ) -> None:
        self.spec = spec
        self.config = config if config is not None else BootstrapConfig()

        # ---- Validation & design ----------------------------------
        self.data: pd.DataFrame = spec.prepare(data)
        self.design = HurdleDesign.from_data(spec, self.data)
        self.strata = self.design.strata(self.data)

        # ---- Observed fit -----------------------------------------
        with _suppress_sm_warnings():
            self.observed_fit: HurdleFit = self._fit(self.data)
        self.predictions: pd.DataFrame = counterfactual_predictions(
            self.observed_fit, self.design, self.data
        )
        self.observed: float = effect_ratio(self.predictions)
        logger.info(
            "Observed effect ratio %.4f (%s, n=%d, positive=%d)",
            self.observed,
            spec.formula,
            self.observed_fit.n_obs,
            self.observed_fit.n_positive,
        )

    @property
    def n_obs(self) -> int:
        return len(self.data)

    @property
    def levels(self) -> tuple:
        return self.design.levels

    def _fit(self, sample: pd.DataFrame) -> HurdleFit:
        return fit_hurdle(
            self.design,
            sample,
            self.spec.family,
            max_iter=self.config.max_iter,
            optimizer=self.config.optimizer,
        )

    def statistic(self, indices: np.ndarray) -> float:
        """Effect ratio on the rows at *indices* (repeats allowed).

        Raises:
            ReplicateFailure: If the fit fails or the ratio is undefined.
        """
        sample = self.data.iloc[indices].reset_index(drop=True)
        fit = self._fit(sample)
        return effect_ratio(counterfactual_predictions(fit, self.design, sample))

    # ---- Bootstrap replicates -------------------------------------

    def _replicate(self, b: int, rng: np.random.Generator) -> ReplicateResult:
        indices = stratified_bootstrap_indices(self.strata, rng)
        try:
            return ReplicateResult.success(b, self.statistic(indices))
        except ReplicateFailure as exc:
            logger.debug("Replicate %d failed: %s", b, exc)
            return ReplicateResult.failure(b, exc)

    def run(self) -> BootstrapDistribution:
        """Execute the R stratified bootstrap replicates.

        Replicates run sequentially when the resolved ``n_jobs`` is 1
        and on a joblib thread pool otherwise.  Results are returned
        in replicate order either way.
        """
        n_bootstrap = self.config.n_bootstrap
        rngs = replicate_generators(self.config.random_state, n_bootstrap)
        n_jobs = self.config.resolved_n_jobs

        with _suppress_sm_warnings():
            if n_jobs == 1:
                results = [self._replicate(b, rng) for b, rng in enumerate(rngs)]
            else:
                # Threads: statsmodels and numpy release the GIL in their
                # linear algebra, and the shared data need not be pickled.
                results = Parallel(n_jobs=n_jobs, prefer="threads")(
                    delayed(self._replicate)(b, rng) for b, rng in enumerate(rngs)
                )

        distribution = BootstrapDistribution(self.observed, tuple(results))
        _report_failures(
            distribution.failure_reasons, n_bootstrap, "bootstrap replicates"
        )
        logger.info(
            "Bootstrap finished: %d/%d replicates succeeded",
            distribution.n_successful,
            n_bootstrap,
        )
        return distribution

    # ---- Jackknife -------------------------------------------------

    def _leave_one_out(self, i: int, indices: np.ndarray) -> ReplicateResult:
        try:
            return ReplicateResult.success(i, self.statistic(indices))
        except ReplicateFailure as exc:
            logger.debug("Jackknife fit without record %d failed: %s", i, exc)
            return ReplicateResult.failure(i, exc)

    def jackknife(self) -> np.ndarray:
        """Leave-one-out effect ratios, one per record.

        Returns:
            Array of length N; failed fits are ``NaN``.
        """
        n_jobs = self.config.resolved_n_jobs
        pairs = enumerate(jackknife_indices(self.n_obs))
        with _suppress_sm_warnings():
            if n_jobs == 1:
                results = [self._leave_one_out(i, idx) for i, idx in pairs]
            else:
                results = Parallel(n_jobs=n_jobs, prefer="threads")(
                    delayed(self._leave_one_out)(i, idx) for i, idx in pairs
                )

        values = np.array(
            [r.statistic if r.ok else np.nan for r in results], dtype=float
        )
        tally = Counter(r.error for r in results if not r.ok)
        _report_failures(dict(tally.most_common()), self.n_obs, "jackknife fits")
        return values


def _report_failures(reasons: dict[str, int], total: int, what: str) -> None:
    """Log and warn once about failed replicates."""
    n_failed = sum(reasons.values())
    if not n_failed:
        return
    detail = "; ".join(f"{msg} (x{count})" for msg, count in reasons.items())
    logger.info("%d of %d %s failed: %s", n_failed, total, what, detail)
    warnings.warn(
        f"{n_failed} of {total} {what} failed and were excluded: {detail}",
        UserWarning,
        stacklevel=4,
    )


__all__ = ["BootstrapEngine"]

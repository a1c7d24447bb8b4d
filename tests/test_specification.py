"""Tests for ModelSpecification validation and HurdleDesign encodings."""

from __future__ import annotations

import warnings

import numpy as np
import pandas as pd
import pytest

from hurdle_bootstrap.exceptions import ConfigurationError
from hurdle_bootstrap.specification import HurdleDesign, ModelSpecification

from _hurdle_data import make_hurdle_data


def _spec(**kwargs) -> ModelSpecification:
    defaults = dict(
        count_predictors=["Intervention", "Age", "Sex"],
        zero_predictors=["Intervention", "Age"],
        family="poisson",
    )
    defaults.update(kwargs)
    return ModelSpecification(**defaults)


@pytest.fixture()
def data():
    return make_hurdle_data(n=60)


# ------------------------------------------------------------------ #
# Construction
# ------------------------------------------------------------------ #


class TestConstruction:
    def test_lists_become_tuples(self) -> None:
        spec = _spec()
        assert spec.count_predictors == ("Intervention", "Age", "Sex")
        assert spec.zero_predictors == ("Intervention", "Age")

    def test_single_string_accepted(self) -> None:
        spec = _spec(zero_predictors="Intervention")
        assert spec.zero_predictors == ("Intervention",)

    def test_formula(self) -> None:
        assert _spec().formula == "Outcome ~ Intervention + Age + Sex | Intervention + Age"

    def test_empty_list_is_intercept_only(self) -> None:
        spec = _spec(zero_predictors=[])
        assert spec.zero_rhs == "1"

    def test_default_family_is_negbin(self) -> None:
        spec = ModelSpecification(["Intervention"], ["Intervention"])
        assert spec.family_name == "negbin"

    def test_family_alias(self) -> None:
        assert _spec(family="negative_binomial").family_name == "negbin"

    def test_unknown_family(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown family"):
            _spec(family="hurdle-zip")

    def test_empty_term(self) -> None:
        with pytest.raises(ConfigurationError, match="empty predictor"):
            _spec(count_predictors=["Age", " "])

    def test_bad_levels(self) -> None:
        with pytest.raises(ConfigurationError, match="two distinct values"):
            _spec(intervention_levels=("a", "a"))

    def test_referenced_columns_from_terms(self) -> None:
        spec = _spec(
            count_predictors=["Intervention", "Age:C(Sex)", "np.log(Dose)"],
            zero_predictors=["I(Age * 2)"],
        )
        assert spec.referenced_columns() == {
            "Outcome",
            "Intervention",
            "Age",
            "Sex",
            "Dose",
        }


# ------------------------------------------------------------------ #
# Dataset validation
# ------------------------------------------------------------------ #


class TestPrepare:
    def test_categorical_intervention(self, data) -> None:
        prepared = _spec().prepare(data)
        col = prepared["Intervention"]
        assert isinstance(col.dtype, pd.CategoricalDtype)
        assert list(col.cat.categories) == ["Control", "Treated"]

    def test_does_not_mutate_input(self, data) -> None:
        before = data.copy()
        _spec().prepare(data)
        pd.testing.assert_frame_equal(data, before)

    def test_explicit_level_order(self, data) -> None:
        prepared = _spec(intervention_levels=("Treated", "Control")).prepare(data)
        assert list(prepared["Intervention"].cat.categories) == ["Treated", "Control"]

    def test_categorical_order_respected(self, data) -> None:
        data = data.assign(
            Intervention=pd.Categorical(
                data["Intervention"], categories=["Treated", "Control", "Unused"]
            )
        )
        prepared = _spec().prepare(data)
        assert list(prepared["Intervention"].cat.categories) == ["Treated", "Control"]

    def test_index_reset(self, data) -> None:
        prepared = _spec().prepare(data.set_index(np.arange(100, 160)))
        assert prepared.index.equals(pd.RangeIndex(60))

    def test_missing_column(self, data) -> None:
        spec = _spec(count_predictors=["Intervention", "Weight"])
        with pytest.raises(ConfigurationError, match="Weight"):
            spec.prepare(data)

    def test_missing_values(self, data) -> None:
        data.loc[3, "Age"] = np.nan
        with pytest.raises(ConfigurationError, match="Missing values"):
            _spec().prepare(data)

    def test_negative_outcome(self, data) -> None:
        data.loc[0, "Outcome"] = -1
        with pytest.raises(ConfigurationError, match="non-negative"):
            _spec().prepare(data)

    def test_three_levels(self, data) -> None:
        data.loc[0, "Intervention"] = "Placebo"
        with pytest.raises(ConfigurationError, match="exactly two levels"):
            _spec().prepare(data)

    def test_one_level(self, data) -> None:
        data["Intervention"] = "Control"
        with pytest.raises(ConfigurationError, match="exactly two levels"):
            _spec().prepare(data)

    def test_value_outside_declared_levels(self, data) -> None:
        spec = _spec(intervention_levels=("Control", "Active"))
        with pytest.raises(ConfigurationError, match="outside the declared levels"):
            spec.prepare(data)

    def test_empty_arm(self, data) -> None:
        data["Intervention"] = "Control"
        spec = _spec(intervention_levels=("Control", "Treated"))
        with pytest.raises(ConfigurationError, match="no observations"):
            spec.prepare(data)

    def test_empty_data(self, data) -> None:
        with pytest.raises(ConfigurationError, match="at least one observation"):
            _spec().prepare(data.iloc[:0])

    def test_rejects_non_frame(self) -> None:
        with pytest.raises(TypeError, match="must be a pandas DataFrame"):
            _spec().prepare([[0, 1]])

    def test_warns_without_intervention_term(self, data) -> None:
        spec = _spec(count_predictors=["Age"], zero_predictors=["Age"])
        with pytest.warns(UserWarning, match="neither predictor list"):
            spec.prepare(data)

    def test_warns_on_interaction(self, data) -> None:
        spec = _spec(count_predictors=["Intervention:Age"])
        with pytest.warns(UserWarning, match="assumed not to interact"):
            spec.prepare(data)

    def test_no_warning_for_plain_terms(self, data) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            _spec().prepare(data)


# ------------------------------------------------------------------ #
# Design matrices
# ------------------------------------------------------------------ #


class TestHurdleDesign:
    def test_column_names(self, data) -> None:
        spec = _spec()
        design = HurdleDesign.from_data(spec, spec.prepare(data))
        assert design.count_names == [
            "Intercept",
            "Intervention[T.Treated]",
            "Sex[T.M]",
            "Age",
        ]
        assert design.zero_names == ["Intercept", "Intervention[T.Treated]", "Age"]
        assert design.levels == ("Control", "Treated")

    def test_encoding_stable_on_subset(self, data) -> None:
        spec = _spec()
        prepared = spec.prepare(data)
        design = HurdleDesign.from_data(spec, prepared)
        only_female = prepared[prepared["Sex"] == "F"]
        X = design.count_matrix(only_female)
        assert X.shape == (len(only_female), 4)
        assert np.all(X[:, 2] == 0.0)

    def test_with_intervention(self, data) -> None:
        spec = _spec()
        prepared = spec.prepare(data)
        design = HurdleDesign.from_data(spec, prepared)
        forced = design.with_intervention(prepared, "Treated")
        assert (forced["Intervention"] == "Treated").all()
        assert np.all(design.zero_matrix(forced)[:, 1] == 1.0)
        # Input untouched.
        assert (prepared["Intervention"] == "Control").any()

    def test_with_unknown_level(self, data) -> None:
        spec = _spec()
        prepared = spec.prepare(data)
        design = HurdleDesign.from_data(spec, prepared)
        with pytest.raises(ConfigurationError, match="not an intervention level"):
            design.with_intervention(prepared, "Placebo")

    def test_strata_codes(self, data) -> None:
        spec = _spec()
        prepared = spec.prepare(data)
        design = HurdleDesign.from_data(spec, prepared)
        codes = design.strata(prepared)
        np.testing.assert_array_equal(
            codes, (prepared["Intervention"] == "Treated").to_numpy().astype(int)
        )

    def test_bad_term(self, data) -> None:
        spec = _spec(count_predictors=["Intervention", "undefined_fn(Age)"])
        prepared = data.copy()
        prepared["Intervention"] = pd.Categorical(prepared["Intervention"])
        with pytest.raises(ConfigurationError, match="Could not build design"):
            HurdleDesign.from_data(spec, prepared)

import math

import numpy as np
import pytest

from resampling.errors import InvalidConfiguration, LengthMismatch
from resampling.evaluation.metrics import compute, compute_metrics, is_lower_better


def test_regression_metrics_known_values():
    truth = [1.0, 2.0, 3.0, 4.0]
    pred = [1.0, 2.0, 3.0, 6.0]
    m = compute_metrics(truth, pred, ["rmse", "mae", "rsq_trad"])

    assert m["rmse"] == pytest.approx(1.0)
    assert m["mae"] == pytest.approx(0.5)
    # 1 - SSE/SST = 1 - 4/5
    assert m["rsq_trad"] == pytest.approx(0.2)


def test_rsq_is_squared_correlation():
    truth = np.array([1.0, 2.0, 3.0, 4.0])
    pred = 10.0 * truth + 3.0
    m = compute_metrics(truth, pred, ["rsq", "rsq_trad"])

    assert m["rsq"] == pytest.approx(1.0)
    assert m["rsq_trad"] < 0


def test_rsq_constant_prediction_is_nan():
    m = compute_metrics([1.0, 2.0, 3.0], [2.0, 2.0, 2.0], ["rsq"])
    assert math.isnan(m["rsq"])


def test_metric_names_are_case_insensitive():
    m = compute_metrics([1.0, 2.0], [1.0, 2.0], ["RMSE"])
    assert m == {"rmse": 0.0}


def test_length_mismatch_raises():
    with pytest.raises(LengthMismatch):
        compute_metrics([1.0, 2.0], [1.0], ["rmse"])


def test_empty_inputs_raise():
    with pytest.raises(LengthMismatch):
        compute_metrics([], [], ["rmse"])


def test_unknown_metric_raises():
    with pytest.raises(InvalidConfiguration, match="Unknown metric"):
        compute_metrics([1.0], [1.0], ["auc"])


def test_classification_metrics():
    truth = np.array(["a", "a", "b", "b"])
    pred = np.array(["a", "b", "b", "b"])
    m = compute_metrics(truth, pred, ["accuracy", "kap", "confusion_matrix"])

    assert m["accuracy"] == pytest.approx(0.75)
    assert m["kap"] == pytest.approx(0.5)
    assert m["cm_a_a"] == 1.0
    assert m["cm_a_b"] == 1.0
    assert m["cm_b_a"] == 0.0
    assert m["cm_b_b"] == 2.0


def test_regression_metric_on_labels_is_configuration_error():
    with pytest.raises(InvalidConfiguration):
        compute_metrics(np.array(["a", "b"]), np.array(["a", "a"]), ["rmse"])


def test_compute_argument_order():
    assert compute(["mae"], [0.0, 0.0], [1.0, 3.0]) == {"mae": 2.0}


def test_direction():
    assert is_lower_better("rmse")
    assert is_lower_better("MAE")
    assert not is_lower_better("rsq")

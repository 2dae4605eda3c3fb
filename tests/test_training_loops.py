from __future__ import annotations

import itertools
import warnings
from typing import Dict, List, Mapping

import numpy as np
import pytest

from mlpengine.core.activations import Activation
from mlpengine.core.errors import (
    ConvergenceWarning,
    InvalidHyperparameter,
    NumericalInstability,
    ShapeMismatch,
)
from mlpengine.core.network import DenseNetwork
from mlpengine.core.optimizers import AdamOptimizer, SGDOptimizer
from mlpengine.core.types import LayerTopology
from mlpengine.data.synthetic import make_blobs, make_linear, make_xor
from mlpengine.models import MLPClassifier, MLPRegressor
from mlpengine.training.config import MLPConfig
from mlpengine.training.trainer import Trainer


class _Capture:
    def __init__(self) -> None:
        self.history: List[tuple[int, Mapping[str, float]]] = []

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self.history.append((epoch, dict(metrics)))


def _xor_first_epoch_loss(seed):
    X = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    y = np.array([0.0, 1.0, 1.0, 0.0])
    rng = np.random.default_rng(seed)
    b0 = np.sqrt(6.0 / (2 + 3))
    W0 = rng.uniform(-b0, b0, size=(2, 3))
    c0 = rng.uniform(-b0, b0, size=3)
    b1 = np.sqrt(6.0 / (3 + 1))
    W1 = rng.uniform(-b1, b1, size=(3, 1))
    c1 = rng.uniform(-b1, b1, size=1)
    h = np.tanh(X @ W0 + c0) @ W1 + c1
    return X, y, np.sum((h.ravel() - y) ** 2) / (2 * 4)


def test_first_epoch_loss_matches_hand_computed_forward_pass():
    seed = 5
    X, y, expected = _xor_first_epoch_loss(seed)
    model = MLPRegressor(
        hidden_layer_sizes=(3,),
        activation="tanh",
        solver="sgd",
        alpha=0.0,
        batch_size=4,
        shuffle=False,
        max_iter=100,
        random_state=seed,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        model.fit(X, y)

    assert [c.shape for c in model.coefs_] == [(2, 3), (3, 1)]
    assert model.loss_curve_[0] == pytest.approx(expected, rel=1e-12)
    assert 1 < model.n_iter_ <= 100
    assert model.loss_curve_[-1] < model.loss_curve_[0]


def test_single_epoch_budget_does_not_warn():
    seed = 5
    X, y, expected = _xor_first_epoch_loss(seed)
    model = MLPRegressor(
        hidden_layer_sizes=(3,),
        activation="tanh",
        solver="sgd",
        alpha=0.0,
        batch_size=4,
        shuffle=False,
        max_iter=1,
        random_state=seed,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        model.fit(X, y)
    assert model.n_iter_ == 1
    assert model.loss_curve_ == [pytest.approx(expected, rel=1e-12)]


def test_loss_decreases_and_fit_is_good_on_linear_target():
    X, y = make_linear(256, slope=2.0, intercept=1.0)
    model = MLPRegressor(
        hidden_layer_sizes=(16,),
        activation="relu",
        solver="adam",
        learning_rate_init=0.01,
        batch_size=32,
        max_iter=300,
        tol=1e-6,
        random_state=0,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        model.fit(X, y.ravel())
    curve = model.loss_curve_
    assert all(curve[i + 1] < curve[i] for i in range(4))
    assert model.score(X, y.ravel()) > 0.95


def test_early_stopping_restores_best_snapshot():
    rng = np.random.default_rng(0)
    X = rng.normal(size=(50, 3))
    Y = rng.normal(size=(50, 1))
    cfg = MLPConfig(
        hidden_layer_sizes=(4,),
        early_stopping=True,
        validation_fraction=0.2,
        n_iter_no_change=3,
        max_iter=50,
    )
    network = DenseNetwork(LayerTopology.build(3, cfg.hidden_layer_sizes, 1))
    trainer_rng = np.random.default_rng(0)
    network.reset(trainer_rng)

    scripted = itertools.chain([0.1, 0.5, 0.6], itertools.repeat(0.6))
    snapshots: Dict[int, np.ndarray] = {}

    def record(epoch, metrics):
        snapshots[epoch] = network.params.copy()

    trainer = Trainer(
        network, cfg, rng=trainer_rng, callbacks=[record], scorer=lambda y, out: next(scripted)
    )
    result = trainer.fit(X, Y)

    assert result.converged
    assert result.n_iter == 7
    assert trainer.diagnostics.validation_scores == [0.1, 0.5, 0.6, 0.6, 0.6, 0.6, 0.6]
    assert trainer.diagnostics.best_validation_score == 0.6
    np.testing.assert_array_equal(network.params, snapshots[3])
    assert not np.array_equal(snapshots[7], snapshots[3])


def test_training_loss_stagnation_stops_adam():
    X = np.zeros((20, 2))
    y = np.zeros(20)
    model = MLPRegressor(hidden_layer_sizes=(2,), n_iter_no_change=2, tol=10.0, max_iter=100)
    model.fit(X, y)
    # the first epoch sets best_loss; every later epoch counts as no improvement
    assert model.n_iter_ == 4


def test_adaptive_sgd_divides_learning_rate_before_stopping():
    X = np.zeros((20, 2))
    y = np.zeros(20)
    capture = _Capture()
    model = MLPRegressor(
        hidden_layer_sizes=(2,),
        solver="sgd",
        learning_rate="adaptive",
        learning_rate_init=0.1,
        n_iter_no_change=1,
        tol=10.0,
        max_iter=40,
        callbacks=[capture],
    )
    model.fit(X, y)
    rates = [metrics["learning_rate"] for _, metrics in capture.history]
    assert rates[0] == pytest.approx(0.1)
    assert min(rates) < 0.1
    assert model.n_iter_ < 40


def test_shuffle_restores_caller_order():
    X = np.arange(60, dtype=np.float64).reshape(30, 2)
    y = np.arange(30, dtype=np.float64)
    X_before, y_before = X.copy(), y.copy()
    model = MLPRegressor(hidden_layer_sizes=(3,), max_iter=3, batch_size=7, random_state=1)
    with pytest.warns(ConvergenceWarning):
        model.fit(X, y)
    np.testing.assert_array_equal(X, X_before)
    np.testing.assert_array_equal(y, y_before)


def test_shuffle_restores_caller_order_when_fit_aborts():
    X = np.linspace(0, 1, 40).reshape(20, 2)
    y = np.linspace(0, 1, 20)
    X_before, y_before = X.copy(), y.copy()

    def explode(epoch, metrics):
        if epoch == 2:
            raise RuntimeError("abort")

    model = MLPRegressor(hidden_layer_sizes=(3,), max_iter=5, batch_size=4, callbacks=[explode])
    with pytest.raises(RuntimeError):
        model.fit(X, y)
    np.testing.assert_array_equal(X, X_before)
    np.testing.assert_array_equal(y, y_before)


def test_validation_rows_are_the_trailing_slice():
    X = np.linspace(0, 1, 40).reshape(20, 2)
    Y = np.linspace(0, 1, 20).reshape(20, 1)
    seen: List[np.ndarray] = []

    def scorer(y_true, outputs):
        seen.append(y_true.copy())
        return 0.0

    cfg = MLPConfig(hidden_layer_sizes=(2,), early_stopping=True, validation_fraction=0.25, max_iter=2)
    network = DenseNetwork(LayerTopology.build(2, (2,), 1))
    network.reset(np.random.default_rng(0))
    with pytest.warns(ConvergenceWarning):
        Trainer(network, cfg, scorer=scorer).fit(X, Y)
    np.testing.assert_array_equal(seen[0], Y[15:])
    np.testing.assert_array_equal(seen[1], Y[15:])


def test_batch_size_larger_than_samples_is_clipped_with_warning():
    X = np.zeros((10, 2))
    y = np.zeros(10)
    model = MLPRegressor(hidden_layer_sizes=(2,), batch_size=500, max_iter=1)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        model.fit(X, y)
    messages = [str(w.message) for w in caught if w.category is UserWarning]
    assert any("clipped" in m for m in messages)


def test_early_stopping_with_empty_split_is_rejected():
    model = MLPRegressor(hidden_layer_sizes=(2,), early_stopping=True)
    with pytest.raises(InvalidHyperparameter):
        model.fit(np.zeros((1, 2)), np.zeros(1))


def test_invalid_hyperparameters_fail_before_training():
    model = MLPRegressor(max_iter=0)
    with pytest.raises(InvalidHyperparameter):
        model.fit(np.zeros((4, 2)), np.zeros(4))
    assert model.network_ is None


def test_diverging_fit_raises_numerical_instability():
    X = np.full((8, 2), 1e200)
    y = np.zeros(8)
    model = MLPRegressor(
        hidden_layer_sizes=(3,), activation="identity", solver="sgd", max_iter=5
    )
    with np.errstate(over="ignore", invalid="ignore"):
        with pytest.raises(NumericalInstability):
            model.fit(X, y)
    assert model.network_ is None
    assert model.trainer_ is None
    with pytest.raises(RuntimeError, match="not fitted"):
        model.predict(np.zeros((2, 2)))


def test_partial_fit_runs_one_epoch_per_call_without_warnings():
    X, y = make_linear(64)
    model = MLPRegressor(hidden_layer_sizes=(4,), batch_size=16, max_iter=1)
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        model.partial_fit(X, y.ravel())
        model.partial_fit(X, y.ravel())
    assert model.n_iter_ == 2
    assert len(model.loss_curve_) == 2
    assert model.t_ == 128


def test_partial_fit_requires_stochastic_solver():
    model = MLPRegressor(solver="lbfgs")
    with pytest.raises(InvalidHyperparameter):
        model.partial_fit(np.zeros((3, 1)), np.zeros(3))


def test_warm_start_keeps_parameters_and_checks_shapes():
    X, y = make_linear(40)
    model = MLPRegressor(hidden_layer_sizes=(4,), max_iter=2, warm_start=True)
    with pytest.warns(ConvergenceWarning):
        model.fit(X, y.ravel())
    params_after_first = model.network_.params.copy()
    with pytest.warns(ConvergenceWarning):
        model.fit(X, y.ravel())
    assert model.n_iter_ == 4
    assert not np.array_equal(model.network_.params, params_after_first)
    with pytest.raises(ShapeMismatch):
        model.fit(np.zeros((5, 3)), np.zeros(5))
    with pytest.raises(ShapeMismatch):
        model.fit(X, np.zeros((40, 2)))


def test_early_stopping_tracks_best_training_loss():
    X, y = make_linear(60)
    model = MLPRegressor(hidden_layer_sizes=(4,), early_stopping=True, max_iter=5, random_state=0)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        model.fit(X, y.ravel())
    assert len(model.validation_scores_) == model.n_iter_
    assert model.best_loss_ == min(model.loss_curve_)


def test_warm_start_rebuilds_optimizer_from_current_config():
    X, y = make_linear(40)
    model = MLPRegressor(hidden_layer_sizes=(4,), max_iter=2, warm_start=True, random_state=0)
    with pytest.warns(ConvergenceWarning):
        model.fit(X, y.ravel())
    assert isinstance(model.trainer_.optimizer, AdamOptimizer)

    model.set_params(solver="sgd", learning_rate_init=0.05)
    with pytest.warns(ConvergenceWarning):
        model.fit(X, y.ravel())
    optimizer = model.trainer_.optimizer
    assert isinstance(optimizer, SGDOptimizer)
    assert optimizer.learning_rate == 0.05
    assert model.n_iter_ == 4

    model.partial_fit(X, y.ravel())
    assert model.trainer_.optimizer is optimizer


def test_row_count_mismatch_is_rejected():
    with pytest.raises(ShapeMismatch):
        MLPRegressor().fit(np.zeros((4, 2)), np.zeros(3))


def test_lbfgs_fits_linear_target():
    X, y = make_linear(128)
    model = MLPRegressor(hidden_layer_sizes=(8,), activation="tanh", solver="lbfgs", max_iter=500)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        model.fit(X, y.ravel())
    assert model.score(X, y.ravel()) > 0.99
    assert model.loss_curve_
    assert model.best_loss_ <= model.loss_curve_[0]
    assert 0 < model.n_iter_ <= 500


def test_lbfgs_iteration_cap_warns():
    X, y = make_blobs(60, n_classes=3, seed=2)
    model = MLPClassifier(hidden_layer_sizes=(5,), solver="lbfgs", max_iter=2)
    with pytest.warns(ConvergenceWarning):
        model.fit(X, y)


def test_multiclass_classifier_uses_softmax_and_learns_blobs():
    X, y = make_blobs(150, n_classes=3, seed=0)
    clf = MLPClassifier(hidden_layer_sizes=(10,), learning_rate_init=0.01, max_iter=200)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        clf.fit(X, y)
    assert clf.out_activation_ == Activation.SOFTMAX.value
    assert clf.loss_func_name_ == "log_loss"
    proba = clf.predict_proba(X)
    np.testing.assert_allclose(proba.sum(axis=1), 1.0)
    np.testing.assert_array_equal(clf.classes_, [0, 1, 2])
    assert clf.score(X, y) > 0.8


def test_binary_classifier_uses_logistic_outputs_on_xor():
    X, y = make_xor(200, jitter=0.05, seed=0)
    labels = np.where(y == 1, "on", "off")
    clf = MLPClassifier(
        hidden_layer_sizes=(8,),
        activation="tanh",
        solver="adam",
        learning_rate_init=0.05,
        max_iter=300,
        random_state=3,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        clf.fit(X, labels)
    assert clf.out_activation_ == "logistic"
    assert clf.n_outputs_ == 2
    assert set(clf.predict(X).tolist()) <= {"on", "off"}
    assert clf.score(X, labels) > 0.95


def test_classifier_early_stopping_scores_decoded_labels():
    X, y = make_blobs(120, n_classes=3, seed=4)
    clf = MLPClassifier(
        hidden_layer_sizes=(8,),
        early_stopping=True,
        validation_fraction=0.25,
        learning_rate_init=0.01,
        max_iter=30,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        clf.fit(X, y)
    assert clf.validation_scores_
    assert all(0.0 <= s <= 1.0 for s in clf.validation_scores_)
    assert clf.best_validation_score_ == max(clf.validation_scores_)


def test_callbacks_receive_loss_and_learning_rate():
    X, y = make_linear(32)
    capture = _Capture()
    model = MLPRegressor(hidden_layer_sizes=(2,), max_iter=3, callbacks=[capture])
    with pytest.warns(ConvergenceWarning):
        model.fit(X, y.ravel())
    assert [epoch for epoch, _ in capture.history] == [1, 2, 3]
    assert all({"loss", "learning_rate"} <= set(m) for _, m in capture.history)
    assert capture.history[-1][1]["loss"] == pytest.approx(model.loss_)


def test_verbose_prints_iteration_losses(capsys):
    X, y = make_linear(16)
    model = MLPRegressor(hidden_layer_sizes=(2,), max_iter=2, verbose=True)
    with pytest.warns(ConvergenceWarning):
        model.fit(X, y.ravel())
    out = capsys.readouterr().out
    assert "Iteration 1, loss = " in out
    assert "Iteration 2, loss = " in out

import numpy as np
import pytest

from mlpengine.core.errors import InvalidHyperparameter
from mlpengine.core.optimizers import (
    AdamOptimizer,
    LearningRateSchedule,
    SGDOptimizer,
    build_optimizer,
)
from mlpengine.training.config import MLPConfig


def test_sgd_nesterov_and_plain_momentum_steps():
    grads = np.ones(3)

    params = np.zeros(3)
    SGDOptimizer(params, learning_rate_init=0.1, momentum=0.9, nesterov=True).update_params(grads)
    np.testing.assert_allclose(params, -0.19)

    params = np.zeros(3)
    opt = SGDOptimizer(params, learning_rate_init=0.1, momentum=0.9, nesterov=False)
    opt.update_params(grads)
    opt.update_params(grads)
    # v1 = -0.1, v2 = 0.9 * -0.1 - 0.1
    np.testing.assert_allclose(params, -0.1 + (-0.19))


def test_sgd_updates_arena_in_place():
    params = np.zeros(4)
    view = params[:2]
    SGDOptimizer(params, learning_rate_init=1.0, momentum=0.0).update_params(np.ones(4))
    np.testing.assert_allclose(view, -1.0)


def test_invscaling_schedule():
    opt = SGDOptimizer(np.zeros(1), learning_rate_init=0.1, lr_schedule="invscaling", power_t=0.5)
    opt.iteration_ends(3)
    assert opt.learning_rate == pytest.approx(0.05)


def test_constant_schedule_stops_immediately():
    opt = SGDOptimizer(np.zeros(1), learning_rate_init=0.1)
    assert opt.trigger_stopping("no improvement.") is True
    assert opt.learning_rate == pytest.approx(0.1)


def test_adaptive_schedule_divides_then_stops(capsys):
    opt = SGDOptimizer(np.zeros(1), learning_rate_init=0.1, lr_schedule=LearningRateSchedule.ADAPTIVE)
    assert opt.trigger_stopping("no improvement.", verbose=True) is False
    assert opt.learning_rate == pytest.approx(0.02)
    assert "Setting learning rate" in capsys.readouterr().out
    opt.learning_rate = 1e-6
    assert opt.trigger_stopping("no improvement.") is True


def test_adam_first_step_moves_by_learning_rate():
    params = np.zeros(3)
    opt = AdamOptimizer(params, learning_rate_init=0.01)
    opt.update_params(np.array([2.0, -0.5, 1e-3]))
    # bias correction makes the first step ~lr * sign(grad)
    np.testing.assert_allclose(params, [-0.01, 0.01, -0.01], rtol=1e-3)
    assert opt.t == 1
    assert opt.trigger_stopping("done") is True


def test_adam_effective_learning_rate_uses_running_beta_products():
    opt = AdamOptimizer(np.zeros(1), learning_rate_init=0.1, beta_1=0.9, beta_2=0.999)
    for _ in range(3):
        opt.update_params(np.ones(1))
    expected = 0.1 * np.sqrt(1 - 0.999**3) / (1 - 0.9**3)
    assert opt.learning_rate == pytest.approx(expected)


def test_build_optimizer_dispatches_on_solver():
    params = np.zeros(2)
    assert isinstance(build_optimizer(MLPConfig(solver="sgd"), params), SGDOptimizer)
    assert isinstance(build_optimizer(MLPConfig(solver="adam"), params), AdamOptimizer)
    with pytest.raises(InvalidHyperparameter):
        build_optimizer(MLPConfig(solver="lbfgs"), params)


def test_unknown_schedule_is_rejected():
    with pytest.raises(InvalidHyperparameter):
        LearningRateSchedule.parse("cosine")

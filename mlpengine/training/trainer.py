"""Training loop controller for :class:`~mlpengine.core.network.DenseNetwork`."""

from __future__ import annotations

import math
import threading
import warnings
from typing import Callable, Mapping, Sequence, Tuple

import numpy as np
from scipy.optimize import minimize

from ..core.errors import ConvergenceWarning, InvalidHyperparameter, ShapeMismatch
from ..core.losses import LossFunction
from ..core.network import DenseNetwork, Workspace
from ..core.optimizers import Optimizer, build_optimizer
from ..core.propagation import backprop
from ..core.types import Array, FitResult, TrainingDiagnostics
from .config import MLPConfig
from .metrics import accuracy_score, indicator_from_outputs, r2_score

Scorer = Callable[[Array, Array], float]

AUTO_BATCH_SIZE = 200


def default_scorer(loss: LossFunction) -> Scorer:
    """Validation scorer matching the network's loss: R^2 or exact-row accuracy."""

    if loss is LossFunction.SQUARE:
        return r2_score

    def _accuracy(y_true: Array, outputs: Array) -> float:
        return accuracy_score(y_true, indicator_from_outputs(outputs, loss))

    return _accuracy


class Trainer:
    """Drive stochastic or L-BFGS fits of one network.

    Diagnostics survive between calls to :meth:`fit`, so warm-started and
    incremental fits extend the same history. Optimizer state (velocities,
    Adam moments, the current learning rate) carries over only into
    incremental fits; every other stochastic fit builds a fresh optimizer
    from the current config. :meth:`reset` forgets both.
    """

    def __init__(
        self,
        network: DenseNetwork,
        config: MLPConfig,
        *,
        rng: np.random.Generator | None = None,
        callbacks: Sequence[object] | None = None,
        scorer: Scorer | None = None,
    ) -> None:
        self.network = network
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng(config.random_state)
        self.callbacks = list(callbacks or [])
        self.scorer = scorer or default_scorer(network.loss)
        self.diagnostics = TrainingDiagnostics()
        self.optimizer: Optimizer | None = None
        self._lock = threading.Lock()

    def reset(self) -> None:
        self.diagnostics = TrainingDiagnostics()
        self.optimizer = None

    def fit(self, X: Array, Y: Array, *, incremental: bool = False) -> FitResult:
        self.config.validate()
        self._check_shapes(X, Y)
        if self.config.solver.lower() == "lbfgs":
            return self._fit_lbfgs(X, Y)
        return self._fit_stochastic(X, Y, incremental=incremental)

    # ------------------------------------------------------------------
    # Initialize

    def _check_shapes(self, X: Array, Y: Array) -> None:
        topology = self.network.topology
        if X.ndim != 2 or Y.ndim != 2:
            raise ShapeMismatch("X and Y must be 2-D arrays")
        if X.shape[0] != Y.shape[0]:
            raise ShapeMismatch(f"X has {X.shape[0]} rows but Y has {Y.shape[0]}")
        if X.shape[0] == 0:
            raise ShapeMismatch("Cannot fit on an empty data set")
        if X.shape[1] != topology.n_features:
            raise ShapeMismatch(
                f"X has {X.shape[1]} features, network expects {topology.n_features}"
            )
        if Y.shape[1] != topology.n_outputs:
            raise ShapeMismatch(
                f"Y has {Y.shape[1]} columns, network produces {topology.n_outputs}"
            )

    def resolve_batch_size(self, n_samples: int) -> int:
        batch_size = self.config.batch_size
        if batch_size is None:
            return min(AUTO_BATCH_SIZE, n_samples)
        if batch_size > n_samples:
            warnings.warn(
                f"Got batch_size={batch_size} larger than the sample size {n_samples}. "
                "It is going to be clipped",
                UserWarning,
                stacklevel=3,
            )
            return n_samples
        return batch_size

    def _split_validation(self, n_samples: int) -> Tuple[int, int]:
        n_val = int(math.ceil(self.config.validation_fraction * n_samples))
        n_train = n_samples - n_val
        if n_val == 0 or n_train == 0:
            raise InvalidHyperparameter(
                f"validation_fraction={self.config.validation_fraction} leaves an empty "
                f"training or validation split for {n_samples} samples"
            )
        return n_train, n_val

    # ------------------------------------------------------------------
    # Stochastic mode

    def _fit_stochastic(self, X: Array, Y: Array, *, incremental: bool) -> FitResult:
        cfg = self.config
        network = self.network
        diag = self.diagnostics
        early_stopping = cfg.early_stopping and not incremental

        n_samples = X.shape[0]
        n_train = n_samples
        if early_stopping:
            n_train, _ = self._split_validation(n_samples)
        batch_size = self.resolve_batch_size(n_train)

        if cfg.shuffle and not (X.flags.writeable and Y.flags.writeable):
            X, Y = X.copy(), Y.copy()
        X_train, Y_train = X[:n_train], Y[:n_train]
        X_val, Y_val = X[n_train:], Y[n_train:]

        workspace = Workspace(network, batch_size)
        if self.optimizer is None or not incremental:
            self.optimizer = build_optimizer(cfg, network.params)
        optimizer = self.optimizer

        order = np.arange(n_train)
        converged = False
        message = ""
        try:
            for _ in range(cfg.max_iter):
                if cfg.shuffle:
                    order = self._shuffle(X_train, Y_train, order)

                accumulated = 0.0
                for start in range(0, n_train, batch_size):
                    stop = min(start + batch_size, n_train)
                    X_batch, Y_batch = X_train[start:stop], Y_train[start:stop]
                    activations, deltas = workspace.view(X_batch)
                    batch_loss = backprop(
                        network,
                        X_batch,
                        Y_batch,
                        activations,
                        deltas,
                        workspace.coef_grads,
                        workspace.intercept_grads,
                    )
                    accumulated += batch_loss * (stop - start)
                    optimizer.update_params(workspace.grads)

                diag.n_iter += 1
                diag.t += n_train
                diag.loss = accumulated / n_train
                diag.loss_curve.append(diag.loss)
                if cfg.verbose:
                    print(f"Iteration {diag.n_iter}, loss = {diag.loss:.8f}")

                if early_stopping:
                    score = float(self.scorer(Y_val, network.predict_raw(X_val)))
                    diag.validation_scores.append(score)
                    if cfg.verbose:
                        print(f"Validation score: {score:f}")
                self._update_no_improvement(early_stopping)
                optimizer.iteration_ends(diag.t)
                self._emit_epoch(diag.n_iter, self._epoch_metrics(early_stopping))

                if diag.no_improvement_count > cfg.n_iter_no_change:
                    subject = "Validation score" if early_stopping else "Training loss"
                    message = (
                        f"{subject} did not improve more than tol={cfg.tol:f} "
                        f"for {cfg.n_iter_no_change} consecutive epochs."
                    )
                    if optimizer.trigger_stopping(message, cfg.verbose):
                        converged = True
                        break
                    diag.no_improvement_count = 0

                if incremental:
                    break
            else:
                message = (
                    f"Stochastic optimizer: Maximum iterations ({cfg.max_iter}) reached "
                    "and the optimization hasn't converged yet."
                )
                if cfg.max_iter > 1:
                    warnings.warn(message, ConvergenceWarning, stacklevel=3)
        finally:
            if cfg.shuffle:
                self._restore(X_train, Y_train, order)

        if early_stopping and diag.best_params is not None:
            network.params[...] = diag.best_params
        return FitResult(
            n_iter=diag.n_iter, converged=converged, loss=diag.loss, message=message
        )

    def _shuffle(self, X: Array, Y: Array, order: Array) -> Array:
        """Permute rows of ``X`` and ``Y`` in place, returning the new row order."""

        permutation = self.rng.permutation(X.shape[0])
        X[...] = X[permutation]
        Y[...] = Y[permutation]
        return order[permutation]

    @staticmethod
    def _restore(X: Array, Y: Array, order: Array) -> None:
        inverse = np.argsort(order)
        X[...] = X[inverse]
        Y[...] = Y[inverse]

    def _update_no_improvement(self, early_stopping: bool) -> None:
        cfg = self.config
        diag = self.diagnostics
        loss = diag.loss_curve[-1]
        if early_stopping:
            score = diag.validation_scores[-1]
            if score < diag.best_validation_score + cfg.tol:
                diag.no_improvement_count += 1
            else:
                diag.no_improvement_count = 0
            if score > diag.best_validation_score:
                diag.best_validation_score = score
                diag.best_params = self.network.params.copy()
        else:
            if loss > diag.best_loss - cfg.tol:
                diag.no_improvement_count += 1
            else:
                diag.no_improvement_count = 0
        if loss < diag.best_loss:
            diag.best_loss = loss

    def _epoch_metrics(self, early_stopping: bool) -> Mapping[str, float]:
        metrics = {
            "loss": float(self.diagnostics.loss),
            "learning_rate": float(self.optimizer.learning_rate),
        }
        if early_stopping:
            metrics["validation_score"] = float(self.diagnostics.validation_scores[-1])
        return metrics

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    # ------------------------------------------------------------------
    # Batch mode

    def _fit_lbfgs(self, X: Array, Y: Array) -> FitResult:
        cfg = self.config
        network = self.network
        diag = self.diagnostics
        workspace = Workspace(network, X.shape[0])
        activations, deltas = workspace.view(X)

        def cost_grad(flat: Array) -> Tuple[float, Array]:
            with self._lock:
                network.params[...] = flat
                loss = backprop(
                    network,
                    X,
                    Y,
                    activations,
                    deltas,
                    workspace.coef_grads,
                    workspace.intercept_grads,
                    apply_weight_decay=False,
                )
                diag.loss = loss
                diag.loss_curve.append(loss)
                if loss < diag.best_loss:
                    diag.best_loss = loss
                return loss, workspace.grads.copy()

        result = minimize(
            cost_grad,
            network.params.copy(),
            method="L-BFGS-B",
            jac=True,
            options={"maxfun": cfg.max_fun, "maxiter": cfg.max_iter, "gtol": cfg.tol},
        )
        network.params[...] = result.x
        diag.n_iter += int(result.nit)
        diag.loss = float(result.fun)
        converged = result.status == 0
        message = str(result.message)
        if not converged:
            warnings.warn(
                f"lbfgs failed to converge (status={result.status}): {message}",
                ConvergenceWarning,
                stacklevel=3,
            )
        self._emit_epoch(diag.n_iter, {"loss": diag.loss})
        return FitResult(n_iter=diag.n_iter, converged=converged, loss=diag.loss, message=message)


__all__ = ["Trainer", "Scorer", "default_scorer", "AUTO_BATCH_SIZE"]

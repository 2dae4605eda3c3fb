"""Estimator front-ends: :class:`MLPRegressor` and :class:`MLPClassifier`."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from .core.activations import Activation
from .core.errors import InvalidHyperparameter, ShapeMismatch
from .core.losses import LossFunction, output_pairing
from .core.network import DenseNetwork
from .core.types import Array, LayerTopology
from .data.label_binarizer import LabelBinarizer
from .training.config import MLPConfig
from .training.metrics import accuracy_score, r2_score
from .training.trainer import Scorer, Trainer


class BaseMultilayerPerceptron:
    """Shared fit / predict plumbing for the two estimators.

    Hyperparameters live in an immutable :class:`MLPConfig`; keyword
    arguments override fields of ``config``.  ``callbacks`` receive
    ``on_epoch(epoch, metrics)`` after every stochastic epoch.
    """

    def __init__(
        self,
        config: MLPConfig | None = None,
        *,
        callbacks: Sequence[object] | None = None,
        **params: Any,
    ) -> None:
        base = config or MLPConfig()
        self.config = base.replace(**params) if params else base
        self.callbacks = list(callbacks or [])
        self.network_: DenseNetwork | None = None
        self.trainer_: Trainer | None = None

    # ------------------------------------------------------------------
    # Hyperparameters

    def get_params(self) -> Dict[str, Any]:
        return self.config.to_dict()

    def set_params(self, **params: Any) -> "BaseMultilayerPerceptron":
        self.config = self.config.replace(**params)
        return self

    # ------------------------------------------------------------------
    # Hooks implemented by the concrete estimators

    def _encode_targets(self, y: Any, *, refit: bool) -> Array:
        raise NotImplementedError

    def _output_pairing(self, n_outputs: int) -> Tuple[Activation, LossFunction]:
        raise NotImplementedError

    def _scorer(self) -> Scorer | None:
        return None

    # ------------------------------------------------------------------
    # Fitting

    def fit(self, X: Any, y: Any) -> "BaseMultilayerPerceptron":
        return self._fit(X, y, incremental=False)

    def partial_fit(self, X: Any, y: Any) -> "BaseMultilayerPerceptron":
        """Run a single epoch over ``X``, initialising the model on first use."""

        if self.config.solver.lower() not in {"sgd", "adam"}:
            raise InvalidHyperparameter(
                f"partial_fit is only available for stochastic optimizers. "
                f"{self.config.solver} is not stochastic."
            )
        return self._fit(X, y, incremental=True)

    def _fit(self, X: Any, y: Any, *, incremental: bool) -> "BaseMultilayerPerceptron":
        cfg = self.config.validate()
        X = self._validate_inputs(X)
        if self.network_ is None or not (cfg.warm_start or incremental):
            # a failed first fit leaves the estimator unfitted
            try:
                self._fit_from_scratch(X, y, incremental=incremental)
            except Exception:
                self._discard_fitted_state()
                raise
            return self

        Y = self._encode_targets(y, refit=False)
        self._check_rows(X, Y)
        self._sync_config(cfg)
        if X.shape[1] != self.network_.topology.n_features:
            raise ShapeMismatch(
                f"X has {X.shape[1]} features, model was fitted with "
                f"{self.network_.topology.n_features}"
            )
        if Y.shape[1] != self.network_.topology.n_outputs:
            raise ShapeMismatch(
                f"y encodes to {Y.shape[1]} outputs, model was fitted with "
                f"{self.network_.topology.n_outputs}"
            )
        self.trainer_.fit(X, Y, incremental=incremental)
        return self

    def _fit_from_scratch(self, X: Array, y: Any, *, incremental: bool) -> None:
        Y = self._encode_targets(y, refit=True)
        self._check_rows(X, Y)
        self._initialize(X.shape[1], Y.shape[1])
        self.network_.reset(self.trainer_.rng)
        self.trainer_.fit(X, Y, incremental=incremental)

    @staticmethod
    def _check_rows(X: Array, Y: Array) -> None:
        if X.shape[0] != Y.shape[0]:
            raise ShapeMismatch(f"X has {X.shape[0]} samples but y has {Y.shape[0]}")

    def _initialize(self, n_features: int, n_outputs: int) -> None:
        """Build the network and its trainer without touching the parameters."""

        cfg = self.config
        out_activation, loss = self._output_pairing(n_outputs)
        topology = LayerTopology.build(n_features, cfg.hidden_layer_sizes, n_outputs)
        self.network_ = DenseNetwork(
            topology,
            hidden_activation=cfg.hidden_activation,
            output_activation=out_activation,
            loss=loss,
            alpha=cfg.alpha,
            weight_decay=cfg.weight_decay,
            batch_normalize=cfg.batch_normalize,
        )
        self.trainer_ = Trainer(
            self.network_,
            cfg,
            rng=np.random.default_rng(cfg.random_state),
            callbacks=self.callbacks,
            scorer=self._scorer(),
        )

    def _discard_fitted_state(self) -> None:
        self.network_ = None
        self.trainer_ = None

    def _sync_config(self, cfg: MLPConfig) -> None:
        network = self.network_
        network.alpha = cfg.alpha
        network.weight_decay = cfg.weight_decay
        self.trainer_.config = cfg
        self.trainer_.callbacks = list(self.callbacks)

    @staticmethod
    def _validate_inputs(X: Any) -> Array:
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2:
            raise ShapeMismatch(f"Expected a 2-D array of samples, got {X.ndim} dimensions")
        return X

    # ------------------------------------------------------------------
    # Inference

    def _check_fitted(self) -> DenseNetwork:
        if self.network_ is None:
            raise RuntimeError(f"This {type(self).__name__} instance is not fitted yet")
        return self.network_

    def _forward(self, X: Any) -> Array:
        network = self._check_fitted()
        X = self._validate_inputs(X)
        if X.shape[1] != network.topology.n_features:
            raise ShapeMismatch(
                f"X has {X.shape[1]} features, model expects {network.topology.n_features}"
            )
        return network.predict_raw(X)

    # ------------------------------------------------------------------
    # Fitted attributes

    @property
    def coefs_(self) -> List[Array]:
        return list(self._check_fitted().coefs)

    @property
    def intercepts_(self) -> List[Array]:
        return list(self._check_fitted().intercepts)

    @property
    def n_layers_(self) -> int:
        return self._check_fitted().topology.n_layers

    @property
    def n_features_in_(self) -> int:
        return self._check_fitted().topology.n_features

    @property
    def n_outputs_(self) -> int:
        return self._check_fitted().topology.n_outputs

    @property
    def out_activation_(self) -> str:
        return self._check_fitted().output_activation.value

    @property
    def loss_func_name_(self) -> str:
        return self._check_fitted().loss.value

    @property
    def loss_curve_(self) -> List[float]:
        self._check_fitted()
        return self.trainer_.diagnostics.loss_curve

    @property
    def validation_scores_(self) -> List[float]:
        self._check_fitted()
        return self.trainer_.diagnostics.validation_scores

    @property
    def best_loss_(self) -> float:
        self._check_fitted()
        return self.trainer_.diagnostics.best_loss

    @property
    def best_validation_score_(self) -> float:
        self._check_fitted()
        return self.trainer_.diagnostics.best_validation_score

    @property
    def n_iter_(self) -> int:
        self._check_fitted()
        return self.trainer_.diagnostics.n_iter

    @property
    def t_(self) -> int:
        self._check_fitted()
        return self.trainer_.diagnostics.t

    @property
    def loss_(self) -> float:
        self._check_fitted()
        return self.trainer_.diagnostics.loss


class MLPRegressor(BaseMultilayerPerceptron):
    """Multilayer perceptron trained on the squared loss."""

    def _encode_targets(self, y: Any, *, refit: bool) -> Array:
        Y = np.asarray(y, dtype=np.float64)
        if Y.ndim == 1:
            Y = Y.reshape(-1, 1)
        if Y.ndim != 2:
            raise ShapeMismatch(f"y must be 1-D or 2-D, got {Y.ndim} dimensions")
        return Y

    def _output_pairing(self, n_outputs: int) -> Tuple[Activation, LossFunction]:
        return output_pairing("regression")

    def predict(self, X: Any) -> Array:
        outputs = self._forward(X)
        if outputs.shape[1] == 1:
            return outputs.ravel()
        return outputs

    def score(self, X: Any, y: Any) -> float:
        return r2_score(np.asarray(y, dtype=np.float64), self.predict(X))


class MLPClassifier(BaseMultilayerPerceptron):
    """Multilayer perceptron over one-hot encoded class labels.

    A single label column with more than two classes is trained with a
    softmax output and the log loss; every other label shape (binary and
    multi-column labels) uses independent logistic outputs with the binary
    log loss.
    """

    def __init__(
        self,
        config: MLPConfig | None = None,
        *,
        callbacks: Sequence[object] | None = None,
        **params: Any,
    ) -> None:
        super().__init__(config, callbacks=callbacks, **params)
        self.label_binarizer_: LabelBinarizer | None = None
        self._pending_classes: Any = None

    def partial_fit(self, X: Any, y: Any, classes: Any = None) -> "MLPClassifier":
        """Incremental epoch; ``classes`` fixes the label set on the first call."""

        self._pending_classes = classes
        try:
            return super().partial_fit(X, y)
        finally:
            self._pending_classes = None

    def _encode_targets(self, y: Any, *, refit: bool) -> Array:
        if refit or self.label_binarizer_ is None:
            source = y if self._pending_classes is None else self._pending_classes
            self.label_binarizer_ = LabelBinarizer().fit(source)
        return self.label_binarizer_.transform(y)

    def _discard_fitted_state(self) -> None:
        super()._discard_fitted_state()
        self.label_binarizer_ = None

    def _output_pairing(self, n_outputs: int) -> Tuple[Activation, LossFunction]:
        classes = self.label_binarizer_.classes_
        if len(classes) == 1 and len(classes[0]) > 2:
            return output_pairing("multiclass")
        return output_pairing("multilabel")

    def _scorer(self) -> Scorer:
        binarizer = self.label_binarizer_

        def _accuracy(y_true: Array, outputs: Array) -> float:
            return accuracy_score(
                binarizer.inverse_transform(y_true), binarizer.inverse_transform(outputs)
            )

        return _accuracy

    @property
    def classes_(self) -> Any:
        if self.label_binarizer_ is None:
            raise RuntimeError("This MLPClassifier instance is not fitted yet")
        classes = self.label_binarizer_.classes_
        return classes[0] if len(classes) == 1 else classes

    def predict_proba(self, X: Any) -> Array:
        return self._forward(X)

    def predict(self, X: Any) -> Array:
        outputs = self._forward(X)
        return self.label_binarizer_.inverse_transform(outputs)

    def score(self, X: Any, y: Any) -> float:
        return accuracy_score(np.asarray(y), self.predict(X))


__all__ = ["BaseMultilayerPerceptron", "MLPRegressor", "MLPClassifier"]

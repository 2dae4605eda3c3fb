"""Forward propagation and backpropagation over stacked dense layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from .activations import apply_activation, multiply_derivative
from .losses import check_finite, compute_loss
from .types import Array

if TYPE_CHECKING:  # pragma: no cover
    from .network import DenseNetwork


def _scale_divisor(scale: Array) -> Array:
    return np.where(scale > 0, scale, 1.0)


def forward_pass(
    network: "DenseNetwork", activations: Sequence[Array], *, training: bool = True
) -> None:
    """Fill ``activations[1:]`` from ``activations[0]``.

    Every buffer must already be contracted to the active batch rows.  When
    per-layer normalisation is enabled the hidden outputs are divided by
    their column-wise max magnitude; training passes record that scale,
    inference passes reuse the recorded one.
    """

    coefs, intercepts = network.coefs, network.intercepts
    last = len(coefs) - 1
    for i, (coef, intercept) in enumerate(zip(coefs, intercepts)):
        out = activations[i + 1]
        np.matmul(activations[i], coef, out=out)
        out += intercept
        if i < last:
            apply_activation(network.hidden_activation, out)
            if network.batch_normalize:
                scale = network.normalization_scales[i]
                if training:
                    np.abs(out).max(axis=0, out=scale)
                out /= _scale_divisor(scale)
        else:
            apply_activation(network.output_activation, out)


def _layer_grad(
    network: "DenseNetwork",
    layer: int,
    n_samples: int,
    activations: Sequence[Array],
    deltas: Sequence[Array],
    coef_grads: Sequence[Array],
    intercept_grads: Sequence[Array],
) -> None:
    np.matmul(activations[layer].T, deltas[layer], out=coef_grads[layer])
    coef_grads[layer] /= n_samples
    if network.alpha:
        coef_grads[layer] += network.coefs[layer] * (network.alpha / n_samples)
    np.mean(deltas[layer], axis=0, out=intercept_grads[layer])


def backprop(
    network: "DenseNetwork",
    X: Array,
    Y: Array,
    activations: Sequence[Array],
    deltas: Sequence[Array],
    coef_grads: Sequence[Array],
    intercept_grads: Sequence[Array],
    *,
    apply_weight_decay: bool = True,
) -> float:
    """Return the regularised loss and fill the gradient buffers.

    ``activations`` has one buffer per layer, ``activations[0]`` being
    replaced by ``X``; ``deltas`` and both gradient lists have one entry per
    layer transition.  All buffers are overwritten, never accumulated.
    """

    n_samples = X.shape[0]
    if apply_weight_decay and network.weight_decay > 0:
        network.params *= 1.0 - network.weight_decay

    activations = list(activations)
    activations[0] = X
    forward_pass(network, activations, training=True)

    loss = compute_loss(network.loss, Y, activations[-1])
    loss += (0.5 * network.alpha) * network.sum_coef_squares() / n_samples
    check_finite(loss)

    last = len(network.coefs) - 1
    # exact for identity/square, logistic/binary log and softmax/log pairings
    np.subtract(activations[-1], Y, out=deltas[last])
    _layer_grad(network, last, n_samples, activations, deltas, coef_grads, intercept_grads)

    for i in range(last, 0, -1):
        np.matmul(deltas[i], network.coefs[i].T, out=deltas[i - 1])
        if network.batch_normalize:
            divisor = _scale_divisor(network.normalization_scales[i - 1])
            # undo the normalisation so the derivative sees the raw output
            activations[i] *= divisor
            multiply_derivative(network.hidden_activation, activations[i], deltas[i - 1])
            deltas[i - 1] /= divisor
        else:
            multiply_derivative(network.hidden_activation, activations[i], deltas[i - 1])
        _layer_grad(network, i - 1, n_samples, activations, deltas, coef_grads, intercept_grads)

    return loss


__all__ = ["forward_pass", "backprop"]

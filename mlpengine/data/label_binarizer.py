"""One-hot encoding of (multi-column) class labels."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from ..core.errors import ShapeMismatch
from ..core.types import Array


def _is_nan(value: object) -> bool:
    return isinstance(value, (float, np.floating)) and value != value


def _nan_mask(column: Array) -> Array:
    if column.dtype.kind == "f":
        return np.isnan(column)
    return np.fromiter((_is_nan(v) for v in column), dtype=bool, count=column.shape[0])


def _column_classes(column: Array) -> Array:
    """Distinct values of ``column`` in ascending order, NaN last."""

    values = column.tolist()
    has_nan = any(_is_nan(v) for v in values)
    distinct = sorted({v for v in values if not _is_nan(v)})
    if has_nan:
        distinct.append(float("nan"))
    return np.array(distinct, dtype=column.dtype)


def _as_columns(labels: object) -> Array:
    array = np.asarray(labels)
    if array.ndim == 1:
        return array.reshape(-1, 1)
    if array.ndim != 2:
        raise ShapeMismatch(f"labels must be 1-D or 2-D, got {array.ndim} dimensions")
    return array


@dataclass
class LabelBinarizer:
    """Encode every label column into a block of one-hot indicator columns.

    Each fitted column contributes one output column per distinct class, in
    ascending class order.  Labels that were not seen during :meth:`fit`
    encode to an all-negative block.
    """

    neg_label: float = 0.0
    pos_label: float = 1.0
    classes_: List[Array] = field(init=False, default_factory=list)
    _one_dimensional: bool = field(init=False, default=False, repr=False)
    _dtype: np.dtype | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        if self.neg_label == self.pos_label:
            self.pos_label = self.neg_label + 1

    @property
    def n_outputs(self) -> int:
        return int(sum(len(c) for c in self.classes_))

    def fit(self, labels: object) -> "LabelBinarizer":
        columns = _as_columns(labels)
        self._one_dimensional = np.asarray(labels).ndim == 1
        self._dtype = columns.dtype
        self.classes_ = [_column_classes(columns[:, j]) for j in range(columns.shape[1])]
        return self

    @classmethod
    def from_classes(
        cls,
        classes: Sequence[Sequence[object]],
        *,
        one_dimensional: bool = False,
        neg_label: float = 0.0,
        pos_label: float = 1.0,
    ) -> "LabelBinarizer":
        """Rebuild a fitted binarizer from per-column class lists."""

        binarizer = cls(neg_label=neg_label, pos_label=pos_label)
        binarizer.classes_ = [np.asarray(c) for c in classes]
        binarizer._one_dimensional = one_dimensional
        binarizer._dtype = np.result_type(*binarizer.classes_) if classes else None
        return binarizer

    def transform(self, labels: object) -> Array:
        self._check_fitted()
        columns = _as_columns(labels)
        if columns.shape[1] != len(self.classes_):
            raise ShapeMismatch(
                f"labels have {columns.shape[1]} columns, binarizer was fitted on {len(self.classes_)}"
            )
        out = np.full((columns.shape[0], self.n_outputs), self.neg_label, dtype=np.float64)
        offset = 0
        for j, classes in enumerate(self.classes_):
            column = columns[:, j]
            for k, cls in enumerate(classes):
                mask = _nan_mask(column) if _is_nan(cls) else column == cls
                out[np.asarray(mask, dtype=bool), offset + k] = self.pos_label
            offset += len(classes)
        return out

    def fit_transform(self, labels: object) -> Array:
        return self.fit(labels).transform(labels)

    def inverse_transform(self, encoded: Array) -> Array:
        """Decode each block to the class with the largest value.

        Ties resolve to the lowest class index.  Columns past the fitted
        blocks are ignored.
        """

        self._check_fitted()
        encoded = np.asarray(encoded, dtype=np.float64)
        if encoded.ndim == 1:
            encoded = encoded.reshape(-1, 1)
        if encoded.shape[1] < self.n_outputs:
            raise ShapeMismatch(
                f"encoded labels have {encoded.shape[1]} columns, expected {self.n_outputs}"
            )
        decoded = np.empty((encoded.shape[0], len(self.classes_)), dtype=self._dtype)
        offset = 0
        for j, classes in enumerate(self.classes_):
            block = encoded[:, offset : offset + len(classes)]
            decoded[:, j] = classes[np.argmax(block, axis=1)]
            offset += len(classes)
        if self._one_dimensional:
            return decoded[:, 0]
        return decoded

    def _check_fitted(self) -> None:
        if not self.classes_:
            raise RuntimeError("LabelBinarizer must be fitted before use")


__all__ = ["LabelBinarizer"]

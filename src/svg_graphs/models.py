from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any


class InvalidInputError(ValueError):
    pass


class AttributeEncodingError(ValueError):
    pass


Label = str | int

# Decimal integer text without leading zeros, the form used as an integer key.
_INTEGER_KEY_RE = re.compile(r"0|-?[1-9][0-9]*")


def _is_integer_key(label: Label) -> bool:
    if isinstance(label, int):
        return True
    return _INTEGER_KEY_RE.fullmatch(label) is not None


def _coerce_value(label: Label, raw: Any) -> float | int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise InvalidInputError(f"Value for '{label}' must be a number, got {type(raw).__name__}")
    if not math.isfinite(raw):
        raise InvalidInputError(f"Value for '{label}' must be finite")
    return raw


@dataclass(slots=True)
class DataSet:
    labels: list[Label]
    values: list[float | int]

    def __post_init__(self) -> None:
        if not self.values:
            raise InvalidInputError("data set must contain at least one entry")
        if len(self.labels) != len(self.values):
            raise InvalidInputError("labels and values lengths must match")
        for label in self.labels:
            if isinstance(label, bool) or not isinstance(label, (str, int)):
                raise InvalidInputError(f"Unsupported label type: {type(label).__name__}")
        self.values = [_coerce_value(label, value) for label, value in zip(self.labels, self.values)]

    @classmethod
    def from_mapping(cls, data: Mapping[Label, Any] | Sequence[Any] | DataSet) -> DataSet:
        if isinstance(data, DataSet):
            return data
        if isinstance(data, Mapping):
            return cls(labels=list(data.keys()), values=list(data.values()))
        if isinstance(data, (str, bytes)):
            raise InvalidInputError("data set must be a mapping or a sequence of numbers")
        values = list(data)
        return cls(labels=list(range(len(values))), values=values)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_labeled(self) -> bool:
        return not all(_is_integer_key(label) for label in self.labels)

    @property
    def max_value(self) -> float | int:
        return max(self.values)

    def items(self) -> list[tuple[Label, float | int]]:
        return list(zip(self.labels, self.values))

    def as_dict(self) -> dict[str, Any]:
        return {
            "labels": [str(label) for label in self.labels],
            "values": list(self.values),
            "labeled": self.is_labeled,
            "max_value": self.max_value,
        }

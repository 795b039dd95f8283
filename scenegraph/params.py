"""Loading of model arguments, class labels and relationship names."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

_log = logging.getLogger(__name__)

_MODEL_PREFIX = "model_"


@dataclass
class ModelParams:
    """Location and tensor names of one exported network."""

    model_path: str
    input_names: list[str] = field(default_factory=list)
    output_names: list[str] = field(default_factory=list)


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [_string(item) for item in value]


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, str, int, float))


def _collect(
    obj: Any, params: dict[str, Any], models: dict[str, ModelParams]
) -> None:
    if not isinstance(obj, dict):
        return
    for name, value in obj.items():
        if _MODEL_PREFIX in name and isinstance(value, dict):
            models[name[len(_MODEL_PREFIX):]] = ModelParams(
                model_path=_string(value["path"]),
                input_names=_strings(value["input"]),
                output_names=_strings(value["output"]),
            )
        elif _is_scalar(value):
            params[name] = value
        elif isinstance(value, dict):
            _collect(value, params, models)


def load_args(json_obj: Any) -> tuple[dict[str, Any], dict[str, ModelParams]]:
    """Split a parsed argument document into scalar parameters and model entries.

    Objects whose key contains ``model_`` describe a network; the name is the key
    with its first six characters removed. Other objects are searched recursively.
    """
    params: dict[str, Any] = {}
    models: dict[str, ModelParams] = {}
    _collect(json_obj, params, models)
    return params, models


def read_lines(path: str) -> list[str]:
    """Return the lines of a text file; an unreadable file gives no lines."""
    try:
        with open(path, encoding="utf-8", newline="") as handle:
            text = handle.read()
    except OSError:
        _log.error("Cannot open file at path %s", path)
        return []
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


class ParamLoader:
    """Reads ``args.json``, ``classes.txt`` and ``relationships.txt`` from a model folder."""

    def __init__(self, path: str, name_args: str = "args.json") -> None:
        self.pth_base = str(path)
        with open(self.pth_base + name_args, encoding="utf-8") as handle:
            document = json.load(handle)
        self.params, self.model_params = load_args(document)
        self.labels: dict[int, str] = dict(
            enumerate(read_lines(f"{self.pth_base}/classes.txt"))
        )
        self.relationships: dict[int, str] = dict(
            enumerate(read_lines(f"{self.pth_base}/relationships.txt"))
        )
        _log.debug("labels: %s", self.labels)
        _log.debug("relationships: %s", self.relationships)
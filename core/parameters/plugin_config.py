# plugin_config.py
"""Attribute handling for passive-force plugin instances.

Hosts hand attributes over as strings (``face="0 1 2 3"``, ``young="1e3"``);
scene files may already carry numbers or lists. Both are accepted.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

import numpy as np

from core.exceptions import PluginConfigError

logger = logging.getLogger("solid_elasticity")


def parse_int_list(value: Any, *, name: str = "value") -> list[int]:
    """Convert a whitespace separated string (or sequence) into ints."""
    if value is None:
        return []
    if isinstance(value, str):
        tokens = value.replace(",", " ").split()
    elif isinstance(value, (int, np.integer)):
        tokens = [value]
    else:
        tokens = list(np.asarray(value).ravel())
    out = []
    for tok in tokens:
        try:
            as_float = float(tok)
        except (TypeError, ValueError) as exc:
            raise PluginConfigError(
                f"Attribute '{name}' must contain integers; got {tok!r}",
                attribute=name,
            ) from exc
        if not as_float.is_integer():
            raise PluginConfigError(
                f"Attribute '{name}' must contain integers; got {tok!r}",
                attribute=name,
            )
        out.append(int(as_float))
    return out


def parse_float(value: Any, *, name: str = "value") -> float:
    """Convert a scalar attribute (string or number) into a float."""
    if isinstance(value, str):
        value = value.strip()
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise PluginConfigError(
            f"Attribute '{name}' should be numeric; got {value!r}",
            attribute=name,
        ) from exc


class PluginConfig:
    def __init__(
        self,
        initial_params: Mapping[str, Any] | None = None,
        *,
        required: Iterable[str] = (),
        defaults: Mapping[str, Any] | None = None,
    ):
        """
        Raw attribute values of a single plugin instance.

        Values are stored as given; typed access goes through ``get_float``
        and ``get_int_list``.
        """
        self._params: dict[str, Any] = dict(defaults or {})
        self.required = tuple(required)
        if initial_params:
            self.update(initial_params)

    def get(self, key, default=None):
        """Retrieve a raw attribute value, or return a default if not found."""
        return self._params.get(key, default)

    def set(self, key, value):
        self._params[key] = value

    def update(self, params):
        """Update multiple attributes at once, dropping ``None`` values."""
        for key, value in dict(params).items():
            if value is None:
                continue
            self._params[key] = value

    def missing(self) -> list[str]:
        """Names of required attributes that are absent or blank."""
        out = []
        for key in self.required:
            value = self._params.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                out.append(key)
        return out

    def check_required(self) -> None:
        missing = self.missing()
        if missing:
            raise PluginConfigError(
                "Missing required plugin attribute(s): " + ", ".join(missing),
                missing=missing,
            )

    def get_float(self, key: str, default: float | None = None) -> float:
        value = self._params.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            value = default
        if value is None:
            raise PluginConfigError(
                f"Attribute '{key}' is not set", missing=[key], attribute=key
            )
        return parse_float(value, name=key)

    def get_int_list(self, key: str) -> list[int]:
        return parse_int_list(self._params.get(key), name=key)

    def __contains__(self, key):
        return key in self._params

    def __repr__(self):
        return f"PluginConfig({self._params})"

    def to_dict(self):
        """Convert the attributes to a dictionary for serialization."""
        return dict(self._params)


__all__ = ["PluginConfig", "parse_float", "parse_int_list"]

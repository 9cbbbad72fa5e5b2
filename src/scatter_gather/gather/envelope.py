"""Serializable representation of a deferred job invocation."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from scatter_gather.exceptions import EnvelopeEncodingError


class CallShape(str, Enum):
    """Which argument kinds the original call used."""

    NONE = "none"
    POSITIONAL = "positional"
    KEYWORD = "keyword"
    MIXED = "mixed"

    @classmethod
    def of(cls, args: Sequence[Any], kwargs: Mapping[str, Any]) -> CallShape:
        if args and kwargs:
            return cls.MIXED
        if kwargs:
            return cls.KEYWORD
        if args:
            return cls.POSITIONAL
        return cls.NONE


@dataclass(frozen=True, slots=True)
class ArgumentEnvelope:
    """Target job name plus the positional and keyword arguments to call it with."""

    target_name: str
    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)

    @property
    def shape(self) -> CallShape:
        return CallShape.of(self.args, self.kwargs)

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-safe dict; raises ``EnvelopeEncodingError`` otherwise."""

        if not self.target_name:
            raise EnvelopeEncodingError("Envelope target name must be non-empty.")
        non_str_keys = [key for key in self.kwargs if not isinstance(key, str)]
        if non_str_keys:
            raise EnvelopeEncodingError(f"Keyword argument names must be strings: {non_str_keys!r}")
        payload = {
            "target": self.target_name,
            "shape": self.shape.value,
            "args": list(self.args),
            "kwargs": dict(self.kwargs),
        }
        try:
            return json.loads(json.dumps(payload, allow_nan=False))
        except (TypeError, ValueError) as error:
            raise EnvelopeEncodingError(
                f"Arguments for {self.target_name} are not JSON-serializable: {error}",
            ) from error

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ArgumentEnvelope:
        try:
            target_name = payload["target"]
            shape = CallShape(payload["shape"])
        except (KeyError, TypeError, ValueError) as error:
            raise EnvelopeEncodingError(f"Malformed envelope payload: {payload!r}") from error

        args = payload.get("args") or []
        kwargs = payload.get("kwargs") or {}
        if not isinstance(target_name, str) or not target_name:
            raise EnvelopeEncodingError(f"Malformed envelope target: {target_name!r}")
        if not isinstance(args, list) or not isinstance(kwargs, dict):
            raise EnvelopeEncodingError(f"Malformed envelope arguments for {target_name}.")

        envelope = cls(target_name=target_name, args=tuple(args), kwargs=kwargs)
        if envelope.shape != shape:
            raise EnvelopeEncodingError(
                f"Envelope for {target_name} is tagged {shape.value} "
                f"but carries {envelope.shape.value} arguments.",
            )
        return envelope

    def invoke(self, func: Callable[..., Any]) -> Any:
        """Call ``func`` reproducing the recorded call shape exactly."""

        shape = self.shape
        if shape is CallShape.MIXED:
            return func(*self.args, **self.kwargs)
        if shape is CallShape.KEYWORD:
            return func(**self.kwargs)
        if shape is CallShape.POSITIONAL:
            return func(*self.args)
        return func()

"""Name <-> job class mapping used to store and resolve job types."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar, overload

from scatter_gather.exceptions import UnresolvedTargetError

JobClass = TypeVar("JobClass", bound=type)


class JobRegistry:
    """Explicit registry of job types that may appear in queue payloads.

    A job type is any class with a ``perform`` method and a no-argument
    constructor. Stored payloads only ever carry the registered name.
    """

    def __init__(self) -> None:
        self._by_name: dict[str, type] = {}
        self._by_class: dict[type, str] = {}

    @overload
    def register(self, job_class: JobClass, *, name: str | None = None) -> JobClass: ...

    @overload
    def register(
        self,
        job_class: None = None,
        *,
        name: str | None = None,
    ) -> Callable[[JobClass], JobClass]: ...

    def register(self, job_class=None, *, name=None):
        """Register a job class, directly or as a class decorator."""

        def _register(cls: JobClass) -> JobClass:
            if not callable(getattr(cls, "perform", None)):
                raise TypeError(f"Job class {cls.__qualname__} has no perform() method.")
            job_name = name or cls.__qualname__
            existing = self._by_name.get(job_name)
            if existing is not None and existing is not cls:
                raise ValueError(
                    f"Job name {job_name!r} is already registered for {existing.__qualname__}.",
                )
            self._by_name[job_name] = cls
            self._by_class.setdefault(cls, job_name)
            return cls

        if job_class is None:
            return _register
        return _register(job_class)

    def resolve(self, name: str) -> type:
        try:
            return self._by_name[name]
        except KeyError:
            raise UnresolvedTargetError(name) from None

    def name_for(self, job_class: type) -> str:
        try:
            return self._by_class[job_class]
        except KeyError:
            raise UnresolvedTargetError(
                f"{job_class.__module__}.{job_class.__qualname__}",
            ) from None

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return item in self._by_name
        return item in self._by_class

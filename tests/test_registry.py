from __future__ import annotations

import allure
import pytest
from sample_jobs import TouchingJob

from scatter_gather.exceptions import UnresolvedTargetError
from scatter_gather.jobs.registry import JobRegistry

pytestmark = [
    allure.epic("Job System"),
    allure.feature("Job Registry"),
]


class Greeter:
    def perform(self, name: str) -> str:
        return f"hello {name}"


class OtherGreeter:
    def perform(self) -> None:
        pass


def test_register_uses_qualified_name_by_default() -> None:
    registry = JobRegistry()

    assert registry.register(Greeter) is Greeter
    assert registry.resolve("Greeter") is Greeter
    assert registry.name_for(Greeter) == "Greeter"
    assert "Greeter" in registry
    assert Greeter in registry


def test_register_works_as_decorator_with_explicit_name() -> None:
    registry = JobRegistry()

    @registry.register(name="greetings.Greeter")
    class Decorated:
        def perform(self) -> None:
            pass

    assert registry.resolve("greetings.Greeter") is Decorated
    assert registry.names() == ["greetings.Greeter"]


def test_register_is_idempotent_for_the_same_class() -> None:
    registry = JobRegistry()
    registry.register(Greeter)
    registry.register(Greeter)

    assert registry.names() == ["Greeter"]


def test_register_rejects_name_collisions() -> None:
    registry = JobRegistry()
    registry.register(Greeter)

    with pytest.raises(ValueError, match="already registered"):
        registry.register(OtherGreeter, name="Greeter")


def test_register_requires_perform() -> None:
    class NotAJob:
        pass

    with pytest.raises(TypeError, match="perform"):
        JobRegistry().register(NotAJob)


def test_unknown_names_and_classes_are_unresolved() -> None:
    registry = JobRegistry()

    with pytest.raises(UnresolvedTargetError, match="Missing"):
        registry.resolve("Missing")
    with pytest.raises(UnresolvedTargetError, match="sample_jobs.TouchingJob"):
        registry.name_for(TouchingJob)
    assert "Missing" not in registry

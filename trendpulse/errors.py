from __future__ import annotations

from typing import Iterable


class ProviderError(RuntimeError):
    """A provider could not produce a usable result."""


class InsufficientSignal(ProviderError):
    """The candidate pool was too small to rank with any confidence."""

    def __init__(self, provider: str, found: int, required: int):
        self.provider = provider
        self.found = found
        self.required = required
        super().__init__(
            f"{provider}: only {found} candidates collected (need {required}); upstreams may be blocked"
        )


class UnknownProvider(ValueError):
    def __init__(self, name: str, allowed: Iterable[str]):
        self.name = name
        self.allowed = list(allowed)
        super().__init__(f"unknown source: {name!r}")


class MissingQuery(ValueError):
    """A provider that ranks completions of ``q`` was called without one."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"{provider} requires a non-empty q parameter")

"""Errors reported to the user; each carries the process exit code."""

from __future__ import annotations


class TwofaError(Exception):
    """Base class for failures reported to the user."""

    exit_code = 1


class DecodeError(TwofaError):
    pass


class EngineError(TwofaError):
    pass


class InvalidAccountNameError(TwofaError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"account name must not contain spaces or ':': {name!r}")


class NotFoundError(TwofaError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"no such account {name!r}")


class LookupAmbiguousError(TwofaError):
    def __init__(self, name: str, matches: int) -> None:
        self.name = name
        self.matches = matches
        super().__init__(f"{matches} records stored for account {name!r}")


class RegistryError(TwofaError):
    pass

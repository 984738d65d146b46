"""Exceptions raised by sessionlog."""


class SessionLogError(Exception):
    """Base exception for sessionlog errors."""

    pass


class HookInputError(SessionLogError):
    """Hook payload missing, unparseable, or lacking a required field.

    Fatal for the current invocation only; the CLI exits non-zero.
    """

    pass

"""
Domain Errors

Architectural Intent:
- One exception type per failure kind a deployment can hit
- Context is attached with `raise ... from ...`, so every error carries its cause chain
- Only TargetValidationError aborts a whole run; every other error is node-local
"""

from typing import Optional


class HenixError(Exception):
    """Base class for all henix errors."""


class ConfigResolutionError(HenixError):
    pass


class TargetValidationError(HenixError):
    pass


class NodeConnectionError(HenixError):
    pass


class ExecError(HenixError):
    """A command could not be executed or its status could not be collected."""


class SpawnFailedError(ExecError):
    pass


class WaitFailedError(ExecError):
    pass


class HashError(HenixError):
    pass


class CopyError(HenixError):
    pass


class BuildError(HenixError):
    pass


class LinkError(HenixError):
    pass


class RollbackError(HenixError):
    pass


class NodeTimeoutError(HenixError):
    pass


class InvalidTransitionError(HenixError):
    pass


def describe_error(error: Optional[BaseException]) -> str:
    """Render an exception and its causes, outermost first.

    >>> describe_error(BuildError("Could not build config"))
    'Could not build config'
    """
    if error is None:
        return ""
    chain = []
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(str(current) or current.__class__.__name__)
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )

    if len(chain) == 1:
        return chain[0]
    lines = [chain[0], "", "Caused by:"]
    for index, message in enumerate(chain[1:]):
        lines.append(f"    {index}: {message}")
    return "\n".join(lines)

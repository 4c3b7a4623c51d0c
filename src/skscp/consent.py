"""
Restore consent — should this agent accept an inbound soul?

The server asks a ConsentPolicy only after the archive has passed
integrity verification. Policies are plain instances, not a class
hierarchy: anything with ``allow(manifest) -> bool`` works, and
bare callables are wrapped with :func:`as_policy`.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, Union, runtime_checkable

import click

from .models import SoulManifest

logger = logging.getLogger("skscp.consent")


@runtime_checkable
class ConsentPolicy(Protocol):
    """Decides whether a verified inbound restore may proceed."""

    def allow(self, manifest: SoulManifest) -> bool:
        ...


class AlwaysAccept:
    """Accept every verified restore."""

    def allow(self, manifest: SoulManifest) -> bool:
        return True


class AlwaysReject:
    """Refuse every restore (read-only agent)."""

    def allow(self, manifest: SoulManifest) -> bool:
        logger.warning("Rejecting soul from %s@%s (policy: reject)", manifest.agent, manifest.source)
        return False


class PromptConsent:
    """Ask the operator on the terminal before accepting a restore.

    Args:
        default: Answer used when the operator just presses enter.
    """

    def __init__(self, default: bool = False):
        self.default = default

    def allow(self, manifest: SoulManifest) -> bool:
        click.echo(
            f"\nIncoming soul transfer:\n"
            f"  Agent: {manifest.agent}\n"
            f"  Source: {manifest.source}\n"
            f"  Timestamp: {manifest.timestamp}\n"
            f"  Files: {len(manifest.files)}\n"
            f"  Checksum: {manifest.checksum[:16]}..."
        )
        return click.confirm("Accept this soul and overwrite the workspace?", default=self.default)


class _CallablePolicy:
    def __init__(self, func: Callable[[SoulManifest], bool]):
        self._func = func

    def allow(self, manifest: SoulManifest) -> bool:
        return bool(self._func(manifest))


ConsentLike = Union[ConsentPolicy, Callable[[SoulManifest], bool], None]

POLICIES = {
    "accept": AlwaysAccept,
    "reject": AlwaysReject,
    "prompt": PromptConsent,
}


def as_policy(consent: ConsentLike) -> Optional[ConsentPolicy]:
    """Normalize a policy, a plain predicate, or None.

    Args:
        consent: A ConsentPolicy, a ``manifest -> bool`` callable, or None.

    Returns:
        ConsentPolicy or None (no consent step).
    """
    if consent is None:
        return None
    if isinstance(consent, ConsentPolicy):
        return consent
    if callable(consent):
        return _CallablePolicy(consent)
    raise TypeError(f"Not a consent policy: {consent!r}")


def policy_by_name(name: str) -> ConsentPolicy:
    """Instantiate a named policy: ``accept``, ``reject`` or ``prompt``."""
    try:
        return POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown consent policy: {name}") from None

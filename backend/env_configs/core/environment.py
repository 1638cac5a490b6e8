"""Deployment tier predicates handed to the configuration dispatcher.

The dispatcher never inspects process state itself; it is given three
zero-argument callables. ``from_settings`` builds the default set from the
``ENV_CONFIGS_ENVIRONMENT`` value, hosts with their own detection can pass
any callables they like.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

Predicate = Callable[[], bool]

LOCAL = 'local'
STAGING = 'staging'
LIVE = 'live'

# Names accepted for each tier in ENV_CONFIGS_ENVIRONMENT
_ALIASES: dict[str, str] = {
    'local': LOCAL,
    'dev': LOCAL,
    'development': LOCAL,
    'staging': STAGING,
    'stage': STAGING,
    'live': LIVE,
    'production': LIVE,
    'prod': LIVE,
}


def _never() -> bool:
    return False


def normalize_environment(name: str | None) -> str | None:
    if not name:
        return None
    return _ALIASES.get(name.strip().lower())


@dataclass(frozen=True)
class EnvironmentPredicates:
    is_local: Predicate = _never
    is_staging: Predicate = _never
    is_live: Predicate = _never

    @classmethod
    def fixed(cls, name: str | None) -> "EnvironmentPredicates":
        tier = normalize_environment(name)
        return cls(
            is_local=lambda: tier == LOCAL,
            is_staging=lambda: tier == STAGING,
            is_live=lambda: tier == LIVE,
        )

    @classmethod
    def from_settings(cls, settings) -> "EnvironmentPredicates":
        return cls.fixed(getattr(settings, 'environment', None))

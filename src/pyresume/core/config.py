"""
Run configuration for routines.

Design Pattern: Value Object
RunConfig is immutable. Every ``with_*`` method returns a new instance,
so one config can be shared by many routines without surprises.

Three ways to build one:
- ``RunConfig()`` - defaults: no timeout, lenient callbacks
- ``RunConfig.from_env()`` - read PYRESUME_* environment variables
- ``RunConfig().with_timeout(5.0).with_strict_callbacks()`` - fluent copies
"""

import os
from dataclasses import dataclass, replace

from pyresume.core.errors import ConfigError

__all__ = ["RunConfig", "DEFAULT_CONFIG"]

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class RunConfig:
    """
    Configuration applied to every invocation of a routine.

    Examples:
        # Fail any invocation that runs longer than 30 seconds
        config = RunConfig(timeout=30.0)

        # Treat a double-called callback as a bug
        config = RunConfig(strict_callbacks=True)

        # Deployment-controlled
        # $ export PYRESUME_TIMEOUT=10
        config = RunConfig.from_env()
    """

    timeout: float | None = None
    """Default timeout in seconds for each invocation.

    None disables the timeout. An explicit ``invocation.timeout(...)`` call
    still applies on top of it.
    """

    strict_callbacks: bool = False
    """Raise RepeatedCallbackError when a thunk calls its callback twice.

    When False the extra call is dropped and logged at WARNING level.
    """

    task_name_prefix: str = "pyresume"
    """Prefix of the asyncio task name of each driver task."""

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout!r}")

    def with_timeout(self, timeout: float | None) -> "RunConfig":
        """Return a copy with a different default timeout (None disables it)."""
        return replace(self, timeout=timeout)

    def with_strict_callbacks(self, strict: bool = True) -> "RunConfig":
        """Return a copy with strict callback checking switched on or off."""
        return replace(self, strict_callbacks=strict)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "RunConfig":
        """
        Build a config from environment variables.

        Reads:
            PYRESUME_TIMEOUT: default timeout in seconds (unset or empty: none)
            PYRESUME_STRICT_CALLBACKS: 1/true/yes/on or 0/false/no/off
            PYRESUME_TASK_PREFIX: task name prefix

        Args:
            environ: Mapping to read instead of ``os.environ``

        Raises:
            ConfigError: If a variable holds a value that cannot be parsed

        Example:
            # $ export PYRESUME_TIMEOUT=2.5
            config = RunConfig.from_env()
            assert config.timeout == 2.5
        """
        env = os.environ if environ is None else environ

        timeout = None
        raw_timeout = env.get("PYRESUME_TIMEOUT", "").strip()
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ConfigError(
                    f"PYRESUME_TIMEOUT must be a number of seconds, got {raw_timeout!r}"
                ) from None

        raw_strict = env.get("PYRESUME_STRICT_CALLBACKS", "").strip().lower()
        if raw_strict in _TRUE_VALUES:
            strict = True
        elif raw_strict in _FALSE_VALUES:
            strict = False
        else:
            raise ConfigError(
                f"PYRESUME_STRICT_CALLBACKS must be a boolean, got {raw_strict!r}"
            )

        prefix = env.get("PYRESUME_TASK_PREFIX") or cls.task_name_prefix

        return cls(timeout=timeout, strict_callbacks=strict, task_name_prefix=prefix)


DEFAULT_CONFIG = RunConfig()

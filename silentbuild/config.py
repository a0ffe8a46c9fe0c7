"""Runtime configuration — env-driven via pydantic-settings.

Reads ``MSE_*`` environment variables (and an optional ``.env`` file).
The activation value itself is resolved by ``resolve_mode`` so that an
explicitly set flag can take precedence over the environment.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from silentbuild.models.session import ActivationMode

logger = logging.getLogger(__name__)

_STRICT_VALUES = frozenset({"", "true", "1", "yes", "on", "strict"})
_OFF_VALUES = frozenset({"false", "0", "off", "no", "disabled"})


class SilentBuildSettings(BaseSettings):
    """Engine settings with environment variable overrides.

    Examples
    --------
    Activate from the environment::

        export MSE_ACTIVE=relaxed
        export MSE_REDIRECT_STDIO=false
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MSE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # MSE_ACTIVE; None means "not set"
    active: str | None = None

    # Console redirection
    redirect_stdio: bool = True
    build_output_dir: Path = Path("target")
    build_log_name: str = "mse-build.log"
    build_log_tail_lines: int = 200

    # "stdlib" adjusts the host's logging levels, "none" leaves them alone
    logging_backend: str = "stdlib"

    def build_log_path(self, basedir: Path) -> Path:
        """Location of the redirected console log for a top-level module."""
        return basedir / self.build_output_dir / self.build_log_name


def parse_mode(raw_value: str | None) -> ActivationMode:
    """Map a raw activation value to an ``ActivationMode``.

    Any unrecognised explicit value still activates strict mode; existing
    setups rely on ``MSE_ACTIVE=<anything>`` turning the engine on.
    """
    if raw_value is None:
        return ActivationMode.OFF
    value = raw_value.strip().lower()
    if value in _STRICT_VALUES:
        return ActivationMode.STRICT
    if value == "relaxed":
        return ActivationMode.RELAXED
    if value in _OFF_VALUES:
        return ActivationMode.OFF
    logger.debug("Unrecognised activation value %r, using strict mode", raw_value)
    return ActivationMode.STRICT


def resolve_mode(flag_value: str | None, env_value: str | None) -> ActivationMode:
    """Resolve the activation mode; an explicitly set flag wins over the env."""
    if flag_value is not None:
        return parse_mode(flag_value)
    return parse_mode(env_value)


def logging_level_for_mode(mode: ActivationMode) -> str:
    """Host logging level name to apply while the engine is active."""
    return "off" if mode == ActivationMode.STRICT else "error"

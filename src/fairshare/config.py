"""Configuration for fairshare."""

from dataclasses import dataclass, fields, replace
from pathlib import Path

import tomlkit

from fairshare.errors import ConfigError

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class Config:
    """Immutable run configuration, built once at startup."""

    excessive_load_threshold_percent: float = 100.0  # % of total core capacity
    active_usage_threshold_percent: float = 1.0  # per-core % to count as active
    fair_share_override_percent: float | None = None
    interval_seconds: int = 5
    live_mode: bool = False
    sample_window: float = 0.5  # Seconds between psutil priming and first reading
    log_level: str = "warning"
    log_path: Path | None = None  # JSON log file, stderr when unset

    def __post_init__(self) -> None:
        self.validate()

    @staticmethod
    def default_path() -> Path:
        """Default config file location."""
        return Path.home() / ".config" / "fairshare" / "config.toml"

    def validate(self) -> None:
        """Raise ConfigError on out-of-range values."""
        if self.excessive_load_threshold_percent < 0:
            raise ConfigError(
                "excessive_load_threshold_percent must be >= 0, "
                f"got {self.excessive_load_threshold_percent}"
            )
        if self.active_usage_threshold_percent < 0:
            raise ConfigError(
                "active_usage_threshold_percent must be >= 0, "
                f"got {self.active_usage_threshold_percent}"
            )
        if self.fair_share_override_percent is not None and self.fair_share_override_percent < 0:
            raise ConfigError(
                f"fair_share_override_percent must be >= 0, got {self.fair_share_override_percent}"
            )
        if self.interval_seconds < 0:
            raise ConfigError(f"interval_seconds must be >= 0, got {self.interval_seconds}")
        if self.sample_window < 0:
            raise ConfigError(f"sample_window must be >= 0, got {self.sample_window}")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log_level: {self.log_level!r}. Must be one of {LOG_LEVELS}")

    def with_overrides(self, **values: object) -> "Config":
        """Return a copy with the given non-None values applied.

        Used to layer command-line options over file configuration.
        """
        known = {f.name for f in fields(self)}
        unknown = set(values) - known
        if unknown:
            raise ConfigError(f"Unknown config fields: {sorted(unknown)}")
        changes = {k: v for k, v in values.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        A missing file is not an error: all defaults come from the dataclass
        definition, so Config() and Config.load() agree.
        """
        path = path or cls.default_path()
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ConfigError(f"Failed to parse config file {path}: {e}") from e

        thresholds = _section(data, "thresholds", path)
        refresh = _section(data, "refresh", path)
        logging_data = _section(data, "logging", path)
        d = cls()

        live = refresh.get("live", d.live_mode)
        if not isinstance(live, bool):
            raise ConfigError(f"refresh.live must be true or false in {path}, got {live!r}")

        fair_share = thresholds.get("fair_share", d.fair_share_override_percent)
        log_path = logging_data.get("path")

        try:
            return cls(
                excessive_load_threshold_percent=float(
                    thresholds.get("excessive_load", d.excessive_load_threshold_percent)
                ),
                active_usage_threshold_percent=float(
                    thresholds.get("active_usage", d.active_usage_threshold_percent)
                ),
                fair_share_override_percent=float(fair_share) if fair_share is not None else None,
                interval_seconds=int(refresh.get("interval", d.interval_seconds)),
                live_mode=live,
                sample_window=float(refresh.get("sample_window", d.sample_window)),
                log_level=str(logging_data.get("level", d.log_level)),
                log_path=Path(str(log_path)).expanduser() if log_path else None,
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"Invalid value in config file {path}: {e}") from e


def _section(data: dict, name: str, path: Path) -> dict:
    """Return a top-level TOML table, or an empty dict when absent."""
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] in config file {path} must be a table")
    return section

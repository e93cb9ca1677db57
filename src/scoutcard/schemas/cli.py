"""CLIConfig: flags from the ``scoutcard`` command line.

Only settings that change from one invocation to the next live here.
"""

from typing import Literal, Optional

from pydantic import field_validator

from scoutcard.schemas.base import ScoutBaseModel
from scoutcard.schemas.param import normalize_weekday


class CLIConfig(ScoutBaseModel):
    """Flag values; wins over both the CONFIG file and the defaults.

    Usage
    -----
        cli_cfg = CLIConfig(base_dir="/srv/scoutcard", log_level="DEBUG")
        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    base_dir: Optional[str] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None
    week_start: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("week_start", mode="before")
    @classmethod
    def normalize_week_start(cls, v):
        return normalize_weekday(v)

    def to_internal_overrides(self) -> dict:
        """Nested dict of the flags that were given, shaped like InternalConfig."""
        overrides = {}

        if self.base_dir is not None:
            overrides["store"] = {"base_dir": str(self.base_dir)}

        trends = {}
        if self.week_start is not None:
            trends["week_start"] = self.week_start
        if self.timezone is not None:
            trends["timezone"] = self.timezone
        if trends:
            overrides["trends"] = trends

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides

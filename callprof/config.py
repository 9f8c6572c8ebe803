import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from callprof.exceptions import ProfilerConfigError
from callprof.utils import LOG_LEVELS


def _parse_bool(value: Optional[Union[str, bool]], default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return value.strip().lower() in ("true", "1", "yes", "on")


@dataclass
class ProfilerSettings:
    """
    Runtime settings for the profiler.
    """

    enabled: bool = True
    output_path: Optional[Path] = None
    log_level: str = "INFO"

    def __post_init__(self):
        self.log_level = str(self.log_level).strip().upper()
        if self.log_level not in LOG_LEVELS:
            raise ProfilerConfigError(
                f"Unknown log level '{self.log_level}'",
                field_name="log_level",
                field_value=self.log_level,
            )

        if self.output_path is not None and not isinstance(self.output_path, Path):
            self.output_path = Path(self.output_path)
        if self.output_path is not None and self.output_path.is_dir():
            raise ProfilerConfigError(
                "output_path points to a directory",
                field_name="output_path",
                field_value=self.output_path,
            )

    @classmethod
    def from_env(cls, env_path: Union[str, Path] = ".env") -> "ProfilerSettings":
        """Load settings from a .env file (if present) and the environment."""
        if Path(env_path).exists():
            load_dotenv(dotenv_path=env_path)

        output_path = os.getenv("CALLPROF_OUTPUT_PATH") or None
        return cls(
            enabled=_parse_bool(os.getenv("CALLPROF_ENABLED"), True),
            output_path=Path(output_path) if output_path else None,
            log_level=os.getenv("CALLPROF_LOG_LEVEL", "INFO"),
        )

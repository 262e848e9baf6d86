import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from lanzza.exceptions import ConfigurationError

TRUTHY = frozenset({"1", "true", "yes", "on"})


def default_data_dir() -> Path:
    return Path.home() / ".local" / "share" / "lanzza"


class LanzzaSettings(BaseModel):
    """Runtime settings, resolved from LANZZA_* environment variables."""

    model_config = ConfigDict(frozen=True)

    data_dir: Path = Field(default_factory=default_data_dir)
    workdir: Path = Field(default_factory=Path.cwd)
    persistence_enabled: bool = True
    attempt_timeout: float = Field(default=10.0, gt=0)

    @field_validator("data_dir", "workdir")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return value.expanduser()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LanzzaSettings":
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if data_dir := env.get("LANZZA_DATA_DIR"):
            values["data_dir"] = data_dir
        if workdir := env.get("LANZZA_WORKDIR"):
            values["workdir"] = workdir
        if disabled := env.get("LANZZA_DISABLE_PERSISTENCE"):
            values["persistence_enabled"] = disabled.strip().lower() not in TRUTHY
        if timeout := env.get("LANZZA_ATTEMPT_TIMEOUT"):
            values["attempt_timeout"] = timeout

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            details = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
            raise ConfigurationError(f"Invalid LANZZA_* configuration: {details}") from e

"""
Estimator configuration.

Holds the tunables of the pitch-estimation pipeline and resolves them from
several sources.

Resolution order (lowest to highest priority):
    1. Defaults declared on EstimatorConfig
    2. Config file (explicit path, ./swarapitch.toml or ~/.swarapitch/config.toml)
    3. SWARAPITCH_<FIELD> environment variables
    4. Keyword overrides passed to load_config()

Config file format:
    [estimator]
    frame_size = 2048
    hop_size = 1024
    min_frequency = 60.0

Keys may also sit at the top level of the file.

The defaults are empirically tuned starting points, not invariants.
"""

import dataclasses
import numbers
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

try:
    import tomllib
except ImportError:  # Python < 3.11
    import tomli as tomllib


METHODS = ("amdf", "cc", "ac")
AGGREGATIONS = ("median", "first")

ENV_PREFIX = "SWARAPITCH_"


class ConfigurationError(ValueError):
    """Raised when estimator parameters are invalid."""
    pass


@dataclass(frozen=True)
class EstimatorConfig:
    """
    Parameters for one pitch estimation.

    Attributes:
        frame_size: Samples per analysis frame (~46 ms at 44.1 kHz)
        hop_size: Stride between frame starts (50% overlap by default)
        min_frequency: Lowest accepted pitch in Hz
        max_frequency: Highest accepted pitch in Hz
        rms_gate: Frames with RMS below this are treated as silence
        method: Per-frame detector ("amdf", "cc" or "ac")
        aggregation: How votes are reduced ("median" or "first")
        max_workers: Threads used for frame analysis (1 = sequential)
        amdf_sensitivity: Valley cut-off as a fraction of the AMDF range
        amdf_ratio: AMDF minimum must be this many times below its maximum
        voicing_threshold: Minimum correlation strength for "cc" and "ac"
        octave_cost: Per-octave bonus favouring higher candidates ("cc", "ac")
    """
    frame_size: int = 2048
    hop_size: int = 1024
    min_frequency: float = 60.0
    max_frequency: float = 1200.0
    rms_gate: float = 0.01
    method: str = "amdf"
    aggregation: str = "median"
    max_workers: int = 1
    amdf_sensitivity: float = 0.1
    amdf_ratio: float = 5.0
    voicing_threshold: float = 0.45
    octave_cost: float = 0.01

    def validate(self) -> "EstimatorConfig":
        """
        Check all parameters, raising ConfigurationError on the first problem.

        Returns:
            self, so calls can be chained
        """
        for name in ("frame_size", "hop_size", "max_workers"):
            value = getattr(self, name)
            if not _is_whole(value):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if self.frame_size <= 0:
            raise ConfigurationError(f"frame_size must be positive, got {self.frame_size}")
        if self.hop_size <= 0:
            raise ConfigurationError(f"hop_size must be positive, got {self.hop_size}")
        if self.hop_size > self.frame_size:
            raise ConfigurationError(
                f"hop_size ({self.hop_size}) must not exceed frame_size ({self.frame_size})"
            )
        if not self.min_frequency > 0:
            raise ConfigurationError(f"min_frequency must be positive, got {self.min_frequency}")
        if not self.max_frequency > self.min_frequency:
            raise ConfigurationError(
                f"max_frequency ({self.max_frequency}) must be greater than "
                f"min_frequency ({self.min_frequency})"
            )
        if not self.rms_gate >= 0:
            raise ConfigurationError(f"rms_gate must be >= 0, got {self.rms_gate}")
        if self.method not in METHODS:
            raise ConfigurationError(f"Unknown method '{self.method}'. Choose from {METHODS}")
        if self.aggregation not in AGGREGATIONS:
            raise ConfigurationError(
                f"Unknown aggregation '{self.aggregation}'. Choose from {AGGREGATIONS}"
            )
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")
        if not 0 <= self.amdf_sensitivity <= 1:
            raise ConfigurationError(
                f"amdf_sensitivity must be within [0, 1], got {self.amdf_sensitivity}"
            )
        if not self.amdf_ratio > 0:
            raise ConfigurationError(f"amdf_ratio must be positive, got {self.amdf_ratio}")
        return self

    def replace(self, **changes: Any) -> "EstimatorConfig":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict of all fields."""
        return dataclasses.asdict(self)


def _is_whole(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Integral):
        return True
    return isinstance(value, float) and value.is_integer()


_FIELD_TYPES = {f.name: f.type for f in dataclasses.fields(EstimatorConfig)}


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw value (often a string) to the declared field type."""
    kind = _FIELD_TYPES[name]
    try:
        if kind in (int, "int"):
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)
        if kind in (float, "float"):
            return float(value)
        return str(value).strip().lower()
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from None


def _find_config_file() -> Optional[Path]:
    """
    Locate a config file.

    Checks in order:
      1. ./swarapitch.toml (project-local config)
      2. ~/.swarapitch/config.toml (user config)
    """
    local_config = Path("swarapitch.toml")
    if local_config.exists():
        return local_config

    user_config = Path.home() / ".swarapitch" / "config.toml"
    if user_config.exists():
        return user_config

    return None


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read estimator settings from a TOML file.

    Settings are taken from an [estimator] table when present, otherwise
    from the top level. Unknown keys are reported with a warning and ignored.

    Args:
        path: Path to the TOML file

    Returns:
        Dict of recognised settings, coerced to their field types
    """
    with open(path, "rb") as f:
        data = tomllib.load(f)

    section = data.get("estimator", data)
    settings = {}
    for key, value in section.items():
        if key not in _FIELD_TYPES:
            warnings.warn(f"Ignoring unknown setting '{key}' in {path}")
            continue
        settings[key] = _coerce(key, value)
    return settings


def read_environment(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect SWARAPITCH_<FIELD> environment variables."""
    if environ is None:
        environ = os.environ
    settings = {}
    for name in _FIELD_TYPES:
        raw = environ.get(ENV_PREFIX + name.upper())
        if raw is not None and raw != "":
            settings[name] = _coerce(name, raw)
    return settings


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
    **overrides: Any
) -> EstimatorConfig:
    """
    Build a validated EstimatorConfig from file, environment and overrides.

    Args:
        path: Explicit config file. When None, the default locations are searched.
        environ: Environment mapping (defaults to os.environ)
        **overrides: Field values taking precedence over everything else.
            None values are ignored so CLI flags can be passed through directly.

    Returns:
        A fresh, validated EstimatorConfig

    Raises:
        ConfigurationError: If any resolved value is invalid
    """
    settings: Dict[str, Any] = {}

    config_path = Path(path) if path is not None else _find_config_file()
    if config_path is not None:
        settings.update(read_config_file(config_path))

    settings.update(read_environment(environ))

    for key, value in overrides.items():
        if key not in _FIELD_TYPES:
            raise ConfigurationError(f"Unknown setting '{key}'")
        if value is not None:
            settings[key] = _coerce(key, value)

    return EstimatorConfig(**settings).validate()

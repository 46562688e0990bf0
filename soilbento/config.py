"""
Run configuration for SoilBento simulations.
Based on Pydantic Settings, so that every option can also be set from the
environment, e.g. SOILBENTO_DT=60 or SOILBENTO_TIMESTEPPER=heun.
"""
import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import jax
import yaml
from pydantic import ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings

from soilbento.timesteppers import ForwardEuler, Heun, Timestepper


class TimestepperType(str, Enum):
    FORWARD_EULER = "forward_euler"
    HEUN = "heun"


TIMESTEPPERS = {
    TimestepperType.FORWARD_EULER: ForwardEuler,
    TimestepperType.HEUN: Heun,
}


class SimulationSettings(BaseSettings):
    """Settings for running a simulation"""

    timestepper: TimestepperType = Field(TimestepperType.FORWARD_EULER, description="Time stepping scheme")
    dt: float = Field(300.0, gt=0, description="Time step in seconds")

    # Run length; at most one of the two
    steps: Optional[int] = Field(None, ge=0, description="Number of time steps to run")
    period_seconds: Optional[float] = Field(None, ge=0, description="Simulated period in seconds")

    # Runtime options
    debug: bool = Field(False, description="Check every step for non-finite values")
    enable_x64: bool = Field(False, description="Use double precision in JAX")
    log_level: str = Field("WARNING", description="Logging level for configure_logging()")

    model_config = ConfigDict(env_prefix="SOILBENTO_", case_sensitive=False)

    @model_validator(mode="after")
    def validate_run_length(self):
        if self.steps is not None and self.period_seconds is not None:
            raise ValueError("Specify either steps or period_seconds, not both")
        return self

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "SimulationSettings":
        """Load settings from a YAML file; environment variables fill the gaps"""
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def to_yaml(self, yaml_path: Union[str, Path]):
        """Save settings to a YAML file"""
        yaml_path = Path(yaml_path)
        yaml_path.parent.mkdir(parents=True, exist_ok=True)

        with open(yaml_path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)

    def run_kwargs(self) -> dict:
        """Keyword arguments for Simulation.run()"""
        if self.period_seconds is not None:
            return {"period": self.period_seconds, "dt": self.dt}
        return {"steps": self.steps or 0, "dt": self.dt}


def load_settings(path: Optional[Union[str, Path]] = None) -> SimulationSettings:
    """Load settings from YAML if a path is given, else from the environment"""
    if path is not None:
        return SimulationSettings.from_yaml(path)
    return SimulationSettings()


def build_timestepper(settings: SimulationSettings) -> Timestepper:
    """Create the configured time stepper"""
    return TIMESTEPPERS[settings.timestepper](dt=settings.dt)


def configure_logging(level: Union[str, int] = "INFO"):
    """Set up a basic log handler for scripts; the library itself installs none"""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s"
    )


def apply_settings(settings: SimulationSettings):
    """Apply process-wide settings (precision and logging)"""
    jax.config.update("jax_enable_x64", settings.enable_x64)
    configure_logging(settings.log_level.upper())

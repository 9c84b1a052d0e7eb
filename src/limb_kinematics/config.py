"""
Configuration for the kinematics manager.

A configuration names the limbs (one base/end link pair each) and the solver
constants. It can be built in code or loaded from YAML:

    base_link: base_link
    limbs:
      - foot_0
      - {end_link: foot_1, name: middle}
    solver:
      tolerance: 1.0e-5
      max_iterations: 100
      epsilon: 1.0e-15
    strict_limits: false
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import yaml

from .errors import ConfigError
from .solver import DEFAULT_WEIGHTS, SolverSettings

DEFAULTS: Dict[str, Any] = {
    "base_link": "base_link",
    "limbs": [],
    "solver": {
        "tolerance": 1e-5,
        "max_iterations": 100,
        "epsilon": 1e-15,
        "weights": list(DEFAULT_WEIGHTS),
    },
    "strict_limits": False,
}


@dataclass(frozen=True)
class LimbConfig:
    """One limb: the chain from ``base_link`` to ``end_link``."""
    end_link: str
    base_link: str = "base_link"
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.end_link


@dataclass(frozen=True)
class KinematicsConfig:
    """Construction-time configuration of a KinematicsManager.

    Attributes:
        limbs: Limb definitions; limb index i refers to limbs[i].
        solver: Solver constants shared by all limbs.
        strict_limits: Abort model updates on inverted (upper < lower) limits
                       instead of reporting them as advisories.
    """
    limbs: Tuple[LimbConfig, ...]
    solver: SolverSettings = field(default_factory=SolverSettings)
    strict_limits: bool = False

    def __post_init__(self):
        object.__setattr__(self, "limbs", tuple(self.limbs))
        if not self.limbs:
            raise ConfigError("At least one limb must be configured")
        labels = [limb.label for limb in self.limbs]
        if len(set(labels)) != len(labels):
            raise ConfigError(f"Limb names must be unique, got {labels}")
        _validate_solver(self.solver)

    @classmethod
    def for_feet(
        cls,
        feet_links: Sequence[str],
        base_link: str = "base_link",
        solver: Optional[SolverSettings] = None,
        strict_limits: bool = False,
    ) -> "KinematicsConfig":
        """One limb per foot link, all sharing ``base_link``."""
        return cls(
            limbs=tuple(LimbConfig(end_link=foot, base_link=base_link) for foot in feet_links),
            solver=solver or SolverSettings(),
            strict_limits=strict_limits,
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "KinematicsConfig":
        """Build a configuration from a dict merged over DEFAULTS."""
        merged = copy.deepcopy(DEFAULTS)
        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}")
            _deep_update(merged, data)

        base_link = merged["base_link"]
        limbs = []
        for entry in merged["limbs"] or []:
            if isinstance(entry, str):
                limbs.append(LimbConfig(end_link=entry, base_link=base_link))
            elif isinstance(entry, dict) and "end_link" in entry:
                limbs.append(LimbConfig(
                    end_link=str(entry["end_link"]),
                    base_link=str(entry.get("base_link", base_link)),
                    name=entry.get("name"),
                ))
            else:
                raise ConfigError(f"Invalid limb entry: {entry!r}")

        solver = merged["solver"]
        if not isinstance(solver, dict):
            raise ConfigError(f"'solver' must be a mapping, got {solver!r}")
        unknown = set(solver) - set(DEFAULTS["solver"])
        if unknown:
            raise ConfigError(f"Unknown solver settings: {sorted(unknown)}")
        try:
            settings = SolverSettings(
                tolerance=float(solver["tolerance"]),
                max_iterations=int(solver["max_iterations"]),
                epsilon=float(solver["epsilon"]),
                weights=tuple(float(w) for w in solver["weights"]),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid solver settings: {exc}") from exc

        return cls(limbs=tuple(limbs), solver=settings, strict_limits=bool(merged["strict_limits"]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "limbs": [
                {"end_link": limb.end_link, "base_link": limb.base_link, "name": limb.name}
                for limb in self.limbs
            ],
            "solver": {
                "tolerance": self.solver.tolerance,
                "max_iterations": self.solver.max_iterations,
                "epsilon": self.solver.epsilon,
                "weights": list(self.solver.weights),
            },
            "strict_limits": self.strict_limits,
        }


def load_config(config_file: Union[str, Path]) -> KinematicsConfig:
    """Load a KinematicsConfig from a YAML file."""
    try:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load config file {config_file}: {exc}") from exc
    return KinematicsConfig.from_dict(data)


def _validate_solver(settings: SolverSettings) -> None:
    if settings.tolerance <= 0.0:
        raise ConfigError(f"Solver tolerance must be positive, got {settings.tolerance}")
    if settings.max_iterations <= 0:
        raise ConfigError(f"Solver max_iterations must be positive, got {settings.max_iterations}")
    if settings.epsilon < 0.0:
        raise ConfigError(f"Solver epsilon must not be negative, got {settings.epsilon}")
    if len(settings.weights) != 6 or any(w < 0.0 for w in settings.weights):
        raise ConfigError(f"Solver weights must be 6 non-negative values, got {settings.weights}")


def _deep_update(base_dict: Dict, update_dict: Dict) -> None:
    """Deep update dictionary"""
    for key, value in update_dict.items():
        if key in base_dict and isinstance(base_dict[key], dict) and isinstance(value, dict):
            _deep_update(base_dict[key], value)
        else:
            base_dict[key] = value

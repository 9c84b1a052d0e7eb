"""
Limb Kinematics: inverse kinematics management for multi-limb legged robots.

Limb chains are cut from a URDF kinematic tree, lined up with their joint
limits, and solved with a JAX-based numerical IK solver. The
KinematicsManager keeps all of it consistent across description updates.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import transforms
from . import core
from . import io
from .config import KinematicsConfig, LimbConfig, load_config
from .errors import (
    ChainNotFoundError,
    ConfigError,
    KinematicsError,
    LimitInversionError,
    MissingJointLimitError,
    NotReadyError,
    SolveFailedError,
    URDFParseError,
)
from .feed import DescriptionFeed
from .manager import KinematicsManager, ManagerState, ModelUpdate
from .solver import ConvergenceCode, IKSolution, SolverSettings

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "ChainNotFoundError",
    "ConfigError",
    "ConvergenceCode",
    "DescriptionFeed",
    "IKSolution",
    "KinematicsConfig",
    "KinematicsError",
    "KinematicsManager",
    "LimbConfig",
    "LimitInversionError",
    "ManagerState",
    "MissingJointLimitError",
    "ModelUpdate",
    "NotReadyError",
    "SolveFailedError",
    "SolverSettings",
    "URDFParseError",
    "load_config",
]

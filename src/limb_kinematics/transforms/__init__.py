"""
Rotation and rigid-transform helpers used by chain kinematics and the IK solver.

- SO(3) rotations (so3 module)
- SE(3) homogeneous transforms and pose errors (se3 module)
"""

from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]

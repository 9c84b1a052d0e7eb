"""I/O utilities for turning robot descriptions into kinematic trees.

The URDF parser is the tree builder consumed by the kinematics manager.
"""

from .urdf_parser import load_urdf, parse_urdf, read_joint_limits

__all__ = ["load_urdf", "parse_urdf", "read_joint_limits"]

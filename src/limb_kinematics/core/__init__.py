"""Core data structures: kinematic trees, joints, limits and chains.

Trees are plain immutable dataclasses; chains are flax struct pytrees so they
can be closed over or passed through jit-compiled kinematics.
"""

from .model import Chain, Joint, JointLimit, JointType, KinematicTree

__all__ = ["Chain", "Joint", "JointLimit", "JointType", "KinematicTree"]

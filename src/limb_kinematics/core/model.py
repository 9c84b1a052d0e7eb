"""Kinematic tree and chain data structures.

A ``KinematicTree`` is the parsed form of one robot description. Every tree
gets a process-unique ``revision``; a ``Chain`` remembers the revision of the
tree it was cut from, which lets consumers verify that a chain, its limits and
its solver all come from the same description.
"""

import enum
import itertools
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from jax import Array
from flax import struct

_revisions = itertools.count(1)


def next_revision() -> int:
    """Return a fresh tree revision number."""
    return next(_revisions)


class JointType(enum.Enum):
    """URDF joint types. Everything except FIXED is movable."""
    FIXED = "fixed"
    REVOLUTE = "revolute"
    CONTINUOUS = "continuous"
    PRISMATIC = "prismatic"

    @property
    def is_movable(self) -> bool:
        return self is not JointType.FIXED


@dataclass(frozen=True)
class JointLimit:
    """Declared [lower, upper] range of a movable joint (radians or metres)."""
    lower: float
    upper: float

    @property
    def is_inverted(self) -> bool:
        return self.upper < self.lower


@dataclass(frozen=True)
class Joint:
    """One edge of the kinematic tree.

    Attributes:
        name: Unique joint name.
        type: Joint type.
        parent: Name of the parent link.
        child: Name of the child link.
        origin: (4, 4) transform from the parent link frame to the joint frame.
        axis: (3,) unit motion axis in the joint frame.
    """
    name: str
    type: JointType
    parent: str
    child: str
    origin: Array
    axis: Array


@dataclass(frozen=True)
class KinematicTree:
    """Immutable link/joint tree built from one robot description.

    Attributes:
        root: Name of the root link (the one link that is nobody's child).
        links: Tuple of all link names in breadth-first order from the root.
        joints: Mapping from joint name to Joint.
        parent_joint: Mapping from link name to the name of the joint that
                      connects it to its parent. The root has no entry.
        revision: Process-unique snapshot number.
    """
    root: str
    links: Tuple[str, ...]
    joints: Mapping[str, Joint]
    parent_joint: Mapping[str, str]
    revision: int = field(default_factory=next_revision)

    @property
    def num_joints(self) -> int:
        """Number of movable joints."""
        return sum(1 for joint in self.joints.values() if joint.type.is_movable)

    @property
    def num_segments(self) -> int:
        """Number of joint edges of any type."""
        return len(self.joints)

    def has_link(self, link: str) -> bool:
        return link in self.parent_joint or link == self.root

    def parent_of(self, link: str) -> Optional[Joint]:
        joint_name = self.parent_joint.get(link)
        return None if joint_name is None else self.joints[joint_name]


@struct.dataclass
class Chain:
    """Serial kinematic chain from ``base_link`` to ``end_link``.

    Segments are ordered base to end; each segment is one joint of the tree,
    fixed or movable. Joint values are only supplied for movable segments, in
    segment order.

    Attributes:
        base_link: Link the chain starts from (its frame is the chain frame).
        end_link: Link the chain ends at.
        revision: Revision of the tree the chain was derived from.
        joint_names: Names of all segment joints, base to end.
        joint_types: JointType of every segment.
        origins: Array of shape (num_segments, 4, 4), parent-to-joint transforms.
        axes: Array of shape (num_segments, 3), unit motion axes.
        revolute_mask: Array of shape (num_segments,), 1.0 for rotating joints.
        prismatic_mask: Array of shape (num_segments,), 1.0 for sliding joints.
    """
    base_link: str = struct.field(pytree_node=False)
    end_link: str = struct.field(pytree_node=False)
    revision: int = struct.field(pytree_node=False)
    joint_names: Tuple[str, ...] = struct.field(pytree_node=False)
    joint_types: Tuple[JointType, ...] = struct.field(pytree_node=False)
    origins: Array
    axes: Array
    revolute_mask: Array
    prismatic_mask: Array

    @property
    def num_segments(self) -> int:
        return len(self.joint_names)

    @property
    def actuated_indices(self) -> Tuple[int, ...]:
        """Segment index of every movable joint, in chain order."""
        return tuple(i for i, joint_type in enumerate(self.joint_types) if joint_type.is_movable)

    @property
    def movable_joint_names(self) -> Tuple[str, ...]:
        return tuple(self.joint_names[i] for i in self.actuated_indices)

    @property
    def num_dof(self) -> int:
        return len(self.actuated_indices)

    def describe(self) -> Dict[str, object]:
        return {
            "base_link": self.base_link,
            "end_link": self.end_link,
            "segments": self.num_segments,
            "joints": self.num_dof,
        }

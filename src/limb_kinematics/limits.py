"""Joint limit alignment and fold/clamp post-processing.

Limits are read from the robot description itself and lined up with the
movable joints of a chain, in chain order, so that index ``i`` of a limb's
joint vector and index ``i`` of its limit list always refer to the same joint.
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from .core import Chain, JointLimit, JointType
from .errors import MissingJointLimitError
from .io.urdf_parser import read_joint_limits

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi

# Bounds given to continuous joints that declare none.
CONTINUOUS_LIMIT = JointLimit(lower=-math.pi, upper=math.pi)


@dataclass(frozen=True)
class LimitInversion:
    """Advisory for a declared limit with upper < lower."""
    joint_name: str
    index: int
    lower: float
    upper: float


@dataclass(frozen=True)
class AlignedLimits:
    """Limits of a chain's movable joints plus any inversion advisories."""
    limits: Tuple[JointLimit, ...]
    advisories: Tuple[LimitInversion, ...] = ()


def align_limits(chain: Chain, description: Union[str, bytes]) -> AlignedLimits:
    """Look up the declared limit of every movable joint of ``chain``.

    Args:
        chain: Chain whose movable joints need limits.
        description: The URDF text the chain's tree was built from.

    Returns:
        AlignedLimits with one JointLimit per movable joint, in chain order.

    Raises:
        MissingJointLimitError: If a chain joint is absent from the document,
            or a revolute/prismatic joint declares no lower/upper bound.
    """
    declared = read_joint_limits(description)

    limits = []
    advisories = []
    for index, joint_name in enumerate(chain.movable_joint_names):
        if joint_name not in declared:
            raise MissingJointLimitError(joint_name, "joint is not in the robot description")
        joint_type, limit = declared[joint_name]
        if limit is None:
            if joint_type is JointType.CONTINUOUS:
                limit = CONTINUOUS_LIMIT
            else:
                raise MissingJointLimitError(joint_name, "no <limit lower=... upper=...> declared")

        logger.info("Joint %d (%s) has limits: [%f, %f].", index, joint_name, limit.lower, limit.upper)
        if limit.is_inverted:
            logger.warning(
                "Joint %s has upper limit less than lower limit: %f < %f.",
                joint_name, limit.upper, limit.lower,
            )
            advisories.append(LimitInversion(joint_name, index, limit.lower, limit.upper))
        limits.append(limit)

    return AlignedLimits(limits=tuple(limits), advisories=tuple(advisories))


def fold_and_clamp(angles, limits: Sequence[JointLimit]) -> Tuple[np.ndarray, bool]:
    """Bring joint angles into their limits using 2π periodicity.

    For each joint, the angle is first folded: it is shifted down by whole
    turns to the largest representative not above the upper limit, then up by
    whole turns to the smallest one not below the lower limit. If it
    is still above the upper limit afterwards, no representative of the angle
    lies inside the limits; it is then clamped to whichever bound is
    circularly closer, (q - upper) mod 2π versus (lower - q) mod 2π. Ties go
    to the upper bound.

    Args:
        angles: Joint angles, one per limit.
        limits: Limits in the same order as ``angles``.

    Returns:
        (adjusted angles as a new float64 array, whether any joint was clamped)
    """
    q = np.array(angles, dtype=np.float64).reshape(-1)
    if q.shape[0] != len(limits):
        raise ValueError(f"Expected {len(limits)} joint angles, got {q.shape[0]}")
    if not np.all(np.isfinite(q)):
        raise ValueError(f"Joint angles must be finite, got {q.tolist()}")

    clamped = False
    for i, limit in enumerate(limits):
        value = float(q[i])
        # Fold in one step per side; fmod is exact, so huge angles cannot stall
        if value > limit.upper:
            excess = math.fmod(value - limit.upper, TWO_PI)
            value = limit.upper - (TWO_PI - excess) if excess > 0.0 else limit.upper
        if value < limit.lower:
            deficit = math.fmod(limit.lower - value, TWO_PI)
            value = limit.lower + (TWO_PI - deficit) if deficit > 0.0 else limit.lower
        # Clamp to the circularly nearest bound
        if value > limit.upper:
            clamped = True
            upper_distance = (value - limit.upper) % TWO_PI
            lower_distance = (limit.lower - value) % TWO_PI
            value = limit.lower if upper_distance > lower_distance else limit.upper
        q[i] = value
    return q, clamped

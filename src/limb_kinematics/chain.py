"""Chain extraction, forward kinematics and Jacobians for serial limb chains.

A limb chain is cut out of a KinematicTree by walking parent joints from the
end link up to the base link. Forward kinematics runs as a ``jax.lax.scan``
over the chain's segments; the Jacobian comes from forward-mode automatic
differentiation of that scan.
"""

import jax
import jax.numpy as jnp
from jax import Array

from .core import Chain, JointType, KinematicTree
from .errors import ChainNotFoundError
from .transforms import se3, so3


def extract_chain(tree: KinematicTree, base_link: str, end_link: str) -> Chain:
    """Extract the serial chain connecting ``base_link`` to ``end_link``.

    The tree is walked from ``end_link`` toward the root along parent joints
    until ``base_link`` is reached; the collected joints are then reversed so
    the chain is ordered base to end. Links of other limbs are never visited.

    Args:
        tree: KinematicTree to extract from.
        base_link: First link of the chain; must be an ancestor of ``end_link``
                   (or ``end_link`` itself, which gives an empty chain).
        end_link: Last link of the chain, typically a foot.

    Returns:
        Chain bound to ``tree.revision``.

    Raises:
        ChainNotFoundError: If a link is unknown or no downward path exists.
    """
    for link in (base_link, end_link):
        if not tree.has_link(link):
            raise ChainNotFoundError(base_link, end_link, f"link '{link}' is not in the tree")

    segments = []
    link = end_link
    while link != base_link:
        joint = tree.parent_of(link)
        if joint is None:
            raise ChainNotFoundError(
                base_link, end_link, f"'{base_link}' is not an ancestor of '{end_link}'"
            )
        segments.append(joint)
        link = joint.parent
    segments.reverse()

    if segments:
        origins = jnp.stack([joint.origin for joint in segments])
        axes = jnp.stack([joint.axis for joint in segments])
    else:
        origins = jnp.zeros((0, 4, 4))
        axes = jnp.zeros((0, 3))

    rotating = (JointType.REVOLUTE, JointType.CONTINUOUS)
    return Chain(
        base_link=base_link,
        end_link=end_link,
        revision=tree.revision,
        joint_names=tuple(joint.name for joint in segments),
        joint_types=tuple(joint.type for joint in segments),
        origins=origins,
        axes=axes,
        revolute_mask=jnp.array([float(joint.type in rotating) for joint in segments]),
        prismatic_mask=jnp.array([float(joint.type is JointType.PRISMATIC) for joint in segments]),
    )


def forward_kinematics(chain: Chain, q: Array) -> Array:
    """Compute the pose of the chain's end link in its base link frame.

    Args:
        chain: Chain to evaluate.
        q: Joint values of shape (num_dof,) for movable joints only.

    Returns:
        (4, 4) SE(3) pose of ``chain.end_link``.
    """
    q = _joint_vector(chain, q)
    if chain.num_segments == 0:
        return jnp.eye(4, dtype=q.dtype)

    # Scatter the movable joint values into a per-segment vector; fixed
    # segments keep zero and both motion masks are zero for them.
    actuated = jnp.array(chain.actuated_indices, dtype=jnp.int32)
    q_full = jnp.zeros(chain.num_segments, dtype=q.dtype).at[actuated].set(q)

    def scan_body(T_base_to_parent, segment):
        origin, axis, revolute, prismatic, q_i = segment
        R_motion = so3.axis_angle(axis, revolute * q_i)
        p_motion = prismatic * q_i * axis
        T_motion = se3.from_position_and_rotation(p_motion, R_motion)
        return T_base_to_parent @ origin @ T_motion, None

    T_end, _ = jax.lax.scan(
        scan_body,
        jnp.eye(4, dtype=q.dtype),
        (chain.origins, chain.axes, chain.revolute_mask, chain.prismatic_mask, q_full),
    )
    return T_end


def jacobian(chain: Chain, q: Array) -> Array:
    """Compute the 6D geometric Jacobian of the end link in the base frame.

    Uses forward-mode automatic differentiation of forward_kinematics. The
    linear rows are the derivative of the end position; the angular rows are
    recovered from dR/dq_i @ R^T, which is skew-symmetric.

    Args:
        chain: Chain to evaluate.
        q: Joint values of shape (num_dof,).

    Returns:
        (6, num_dof) Jacobian with rows [vx, vy, vz, wx, wy, wz]
    """
    q = _joint_vector(chain, q)
    if chain.num_dof == 0:
        return jnp.zeros((6, 0), dtype=q.dtype)

    def end_pose(joint_values: Array) -> Array:
        return forward_kinematics(chain, joint_values)

    T = end_pose(q)
    dT = jax.jacfwd(end_pose)(q)  # (4, 4, num_dof)

    J_linear = dT[:3, 3, :]
    spins = jnp.einsum("ijn,kj->nik", dT[:3, :3, :], T[:3, :3])  # dR_n @ R^T
    J_angular = so3.vee(spins).T
    return jnp.concatenate([J_linear, J_angular], axis=0)


def _joint_vector(chain: Chain, q) -> Array:
    q = jnp.asarray(q, dtype=jnp.float64)
    if q.shape != (chain.num_dof,):
        raise ValueError(
            f"Chain {chain.base_link} -> {chain.end_link} has {chain.num_dof} joints, "
            f"got joint vector of shape {q.shape}"
        )
    return q

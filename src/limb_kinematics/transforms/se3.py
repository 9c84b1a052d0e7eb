"""SE(3) homogeneous transform helpers in JAX.

Poses are (..., 4, 4) homogeneous matrices. Pose errors are 6D vectors in
[vx, vy, vz, wx, wy, wz] order, matching the row order of chain Jacobians.
"""

import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    p = jnp.asarray(p)
    R = jnp.asarray(R)
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    dtype = jnp.result_type(p, R)
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def from_position(p) -> Array:
    """Pure translation: identity rotation at position ``p``."""
    p = jnp.asarray(p, dtype=jnp.float64)
    return from_position_and_rotation(p, jnp.eye(3, dtype=p.dtype))


def inverse(T: Array) -> Array:
    """
    Compute inverse of SE(3) transformation matrix.

    T^-1 = [[R^T, -R^T @ t], [0, 1]]

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 4, 4) inverse transformation matrix
    """
    R_inv = jnp.swapaxes(T[..., :3, :3], -1, -2)
    t_inv = -jnp.einsum("...ij,...j->...i", R_inv, T[..., :3, 3])
    return from_position_and_rotation(t_inv, R_inv)


def get_position(T: Array) -> Array:
    """(..., 4, 4) -> (..., 3) translation."""
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """(..., 4, 4) -> (..., 3, 3) rotation."""
    return T[..., :3, :3]


def pose_error(T: Array, T_goal: Array) -> Array:
    """
    6D error that moves pose ``T`` onto ``T_goal``, expressed in the frame
    both poses are given in.

    The linear part is the position difference; the angular part is the
    rotation vector of R_goal @ R^T. Driving this to zero with a Jacobian in
    the same frame is the classic velocity-level IK update.

    Args:
        T: (..., 4, 4) current pose
        T_goal: (..., 4, 4) desired pose

    Returns:
        (..., 6) error [vx, vy, vz, wx, wy, wz]
    """
    dp = get_position(T_goal) - get_position(T)
    R_err = jnp.matmul(get_rotation(T_goal), jnp.swapaxes(get_rotation(T), -1, -2))
    return jnp.concatenate([dp, so3.log(R_err)], axis=-1)

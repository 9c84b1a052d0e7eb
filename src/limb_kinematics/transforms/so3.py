"""SO(3) rotation helpers in JAX.

Rotations are 3x3 matrices; rotation vectors are (..., 3) axis * angle.
All functions are pure and broadcast over leading batch dimensions.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector(s) to skew-symmetric cross-product matrices.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) matrix K with K @ x == cross(v, x)
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def vee(K: Array) -> Array:
    """Inverse of skew_symmetric: (..., 3, 3) -> (..., 3)."""
    return jnp.stack([K[..., 2, 1], K[..., 0, 2], K[..., 1, 0]], axis=-1)


def axis_angle(axis: Array, angle: Array) -> Array:
    """
    Rotation about a unit axis by an explicit angle (Rodrigues' formula).

    Unlike an exponential map of ``axis * angle``, the angle is never recovered
    through a norm, so the result is smooth in ``angle`` everywhere, including
    at zero. Joint motion is differentiated through this function.

    Args:
        axis: (..., 3) unit rotation axis
        angle: (...) rotation angle in radians

    Returns:
        (..., 3, 3) rotation matrix
    """
    angle = jnp.asarray(angle)
    K = skew_symmetric(axis)
    I = jnp.broadcast_to(jnp.eye(3, dtype=K.dtype), K.shape)

    sin_angle = jnp.sin(angle)[..., None, None]
    cos_angle = jnp.cos(angle)[..., None, None]

    # R = I + sin(θ) K + (1 - cos(θ)) K²
    return I + sin_angle * K + (1.0 - cos_angle) * jnp.matmul(K, K)


def log(R: Array) -> Array:
    """
    SO(3) logarithm: rotation matrix to rotation vector.

    Used to measure orientation error. Three regimes are handled: small
    angles (first-order skew extraction), the general case, and angles near
    π where the skew part vanishes and the axis comes from (R + I) / 2.

    Args:
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 3) rotation vector with norm in [0, π]
    """
    trace = jnp.trace(R, axis1=-2, axis2=-1)
    cos_angle = jnp.clip((trace - 1.0) / 2.0, -1.0, 1.0)
    angle = jnp.arccos(cos_angle)

    small_angle = angle < 1e-8
    near_pi = (jnp.pi - angle) < 1e-6

    skew_part = vee(R - jnp.swapaxes(R, -1, -2))  # 2 sin(θ) * axis

    # General case: θ / (2 sin θ) * skew_part
    safe_sin = jnp.where(small_angle | near_pi, 1.0, jnp.sin(angle))
    w_general = (angle / (2.0 * safe_sin))[..., None] * skew_part

    # Small angles: sin θ ≈ θ
    w_small = 0.5 * skew_part

    # Near π: the column of (R + I) / 2 with the largest diagonal entry is
    # proportional to the axis; the skew part (if any is left) fixes its sign.
    B = (R + jnp.eye(3, dtype=R.dtype)) / 2.0
    max_idx = jnp.argmax(jnp.diagonal(B, axis1=-2, axis2=-1), axis=-1)
    axis_pi = jnp.take_along_axis(B, max_idx[..., None, None], axis=-1)[..., 0]
    axis_pi = axis_pi / jnp.linalg.norm(axis_pi, axis=-1, keepdims=True)
    sign = jnp.where(jnp.sum(axis_pi * skew_part, axis=-1) < 0.0, -1.0, 1.0)
    w_pi = (sign * angle)[..., None] * axis_pi

    return jnp.where(
        small_angle[..., None],
        w_small,
        jnp.where(near_pi[..., None], w_pi, w_general),
    )


def from_rpy(roll, pitch, yaw) -> Array:
    """
    Rotation matrix from fixed-axis roll, pitch, yaw (URDF convention).

    Returns:
        (3, 3) matrix Rz(yaw) @ Ry(pitch) @ Rx(roll)
    """
    x_axis = jnp.array([1.0, 0.0, 0.0])
    y_axis = jnp.array([0.0, 1.0, 0.0])
    z_axis = jnp.array([0.0, 0.0, 1.0])
    return axis_angle(z_axis, yaw) @ axis_angle(y_axis, pitch) @ axis_angle(x_axis, roll)

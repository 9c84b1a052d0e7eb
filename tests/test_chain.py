"""Tests for chain extraction, forward kinematics and Jacobian computation."""

from pathlib import Path

import jax
import jax.numpy as jnp
import jax.random as jrandom
import numpy as np
import pytest

from limb_kinematics.chain import extract_chain, forward_kinematics, jacobian
from limb_kinematics.core import JointType
from limb_kinematics.errors import ChainNotFoundError
from limb_kinematics.io import load_urdf, parse_urdf

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="module")
def tree():
    return load_urdf(FIXTURES / "antsy.urdf")


def test_extract_leg_chain(tree):
    """Leg chains run base to foot and include the fixed foot joint."""
    chain = extract_chain(tree, "base_link", "foot_1")

    assert chain.base_link == "base_link"
    assert chain.end_link == "foot_1"
    assert chain.revision == tree.revision
    assert chain.joint_names == ("coxa_joint_1", "femur_joint_1", "tibia_joint_1", "foot_joint_1")
    assert chain.joint_types[-1] is JointType.FIXED
    assert chain.num_segments == 4
    assert chain.num_dof == 3
    assert chain.actuated_indices == (0, 1, 2)
    assert chain.movable_joint_names == ("coxa_joint_1", "femur_joint_1", "tibia_joint_1")
    assert chain.origins.shape == (4, 4, 4)
    assert chain.axes.shape == (4, 3)
    np.testing.assert_allclose(chain.revolute_mask, [1.0, 1.0, 1.0, 0.0])
    np.testing.assert_allclose(chain.prismatic_mask, [0.0, 0.0, 0.0, 0.0])


def test_extraction_is_deterministic(tree):
    """Repeated extraction on one tree gives identical chains."""
    for foot in ("foot_0", "foot_1", "foot_2"):
        first = extract_chain(tree, "base_link", foot)
        for _ in range(3):
            again = extract_chain(tree, "base_link", foot)
            assert again.joint_names == first.joint_names
            assert again.joint_types == first.joint_types
            np.testing.assert_array_equal(again.origins, first.origins)


def test_partial_chain(tree):
    """A chain may start below the root."""
    chain = extract_chain(tree, "coxa_2", "tibia_2")
    assert chain.joint_names == ("femur_joint_2", "tibia_joint_2")
    assert chain.num_dof == 2


def test_empty_chain(tree):
    chain = extract_chain(tree, "femur_0", "femur_0")
    assert chain.num_segments == 0
    assert chain.num_dof == 0
    np.testing.assert_allclose(forward_kinematics(chain, jnp.zeros(0)), jnp.eye(4))
    assert jacobian(chain, jnp.zeros(0)).shape == (6, 0)


@pytest.mark.parametrize("base, end, match", [
    ("base_link", "foot_9", "'foot_9' is not in the tree"),
    ("body", "foot_0", "'body' is not in the tree"),
    ("foot_0", "base_link", "not an ancestor"),
    ("coxa_0", "foot_1", "not an ancestor"),
])
def test_chain_not_found(tree, base, end, match):
    with pytest.raises(ChainNotFoundError, match=match) as excinfo:
        extract_chain(tree, base, end)
    assert excinfo.value.base_link == base
    assert excinfo.value.end_link == end


def test_fk_zero_configuration(tree):
    """At zero the legs point straight out along their mounting direction."""
    leg_length = 0.1 + 0.05 + 0.1 + 0.12
    for i, yaw in enumerate([0.0, 2.0 * np.pi / 3.0, 4.0 * np.pi / 3.0]):
        chain = extract_chain(tree, "base_link", f"foot_{i}")
        T = forward_kinematics(chain, jnp.zeros(3))

        assert T.shape == (4, 4)
        np.testing.assert_allclose(T[3, :], [0, 0, 0, 1], atol=1e-12)
        np.testing.assert_allclose(
            T[:3, 3], [leg_length * np.cos(yaw), leg_length * np.sin(yaw), 0.0], atol=1e-12
        )


def test_fk_femur_down(tree):
    """Rotating the femur by +90° about y points the rest of the leg down."""
    chain = extract_chain(tree, "base_link", "foot_0")
    T = forward_kinematics(chain, jnp.array([0.0, np.pi / 2, 0.0]))
    np.testing.assert_allclose(T[:3, 3], [0.15, 0.0, -0.22], atol=1e-12)

    # Orthonormal rotation
    R = T[:3, :3]
    np.testing.assert_allclose(R @ R.T, jnp.eye(3), atol=1e-12)


def test_fk_prismatic_joint():
    tree = parse_urdf(
        '<robot name="slider"><link name="a"/><link name="b"/>'
        '<joint name="j" type="prismatic"><parent link="a"/><child link="b"/>'
        '<origin xyz="1 0 0"/><axis xyz="0 0 1"/><limit lower="0" upper="0.5"/></joint></robot>'
    )
    chain = extract_chain(tree, "a", "b")
    T = forward_kinematics(chain, jnp.array([0.25]))
    np.testing.assert_allclose(T[:3, 3], [1.0, 0.0, 0.25], atol=1e-12)
    np.testing.assert_allclose(T[:3, :3], jnp.eye(3), atol=1e-12)


def test_fk_rejects_wrong_length(tree):
    chain = extract_chain(tree, "base_link", "foot_0")
    with pytest.raises(ValueError, match="has 3 joints"):
        forward_kinematics(chain, jnp.zeros(4))


def test_fk_jit_compatibility(tree):
    """Forward kinematics can be jit-compiled with the chain closed over."""
    chain = extract_chain(tree, "base_link", "foot_2")
    q = jnp.array([0.1, -0.2, 0.3])

    jit_fk = jax.jit(lambda joint_values: forward_kinematics(chain, joint_values))
    np.testing.assert_allclose(jit_fk(q), forward_kinematics(chain, q), atol=1e-12)


def test_jacobian_zero_configuration(tree):
    """Angular columns are the world joint axes; linear columns follow from geometry."""
    chain = extract_chain(tree, "base_link", "foot_0")
    J = jacobian(chain, jnp.zeros(3))

    assert J.shape == (6, 3)
    # coxa about z, femur and tibia about y
    np.testing.assert_allclose(J[3:, 0], [0.0, 0.0, 1.0], atol=1e-12)
    np.testing.assert_allclose(J[3:, 1], [0.0, 1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(J[3:, 2], [0.0, 1.0, 0.0], atol=1e-12)
    # z × (foot - coxa) with the foot 0.27 m out along x
    np.testing.assert_allclose(J[:3, 0], [0.0, 0.27, 0.0], atol=1e-12)
    # y × (foot - femur joint): the foot moves down
    np.testing.assert_allclose(J[:3, 1], [0.0, 0.0, -0.22], atol=1e-12)
    np.testing.assert_allclose(J[:3, 2], [0.0, 0.0, -0.12], atol=1e-12)


def test_jacobian_numerical_verification(tree):
    """Linear rows agree with central finite differences of the foot position."""
    chain = extract_chain(tree, "base_link", "foot_1")
    q = jnp.array([0.3, -0.4, 0.9])
    J = jacobian(chain, q)

    h = 1e-6
    for i in range(3):
        dq = jnp.zeros(3).at[i].set(h)
        p_plus = forward_kinematics(chain, q + dq)[:3, 3]
        p_minus = forward_kinematics(chain, q - dq)[:3, 3]
        np.testing.assert_allclose(J[:3, i], (p_plus - p_minus) / (2 * h), atol=1e-8)


def test_jacobian_random_configs(tree):
    """Property test: Jacobian is finite at random configurations."""
    chain = extract_chain(tree, "base_link", "foot_2")
    key = jrandom.PRNGKey(0)
    q_samples = jrandom.uniform(key, shape=(10, 3), minval=-jnp.pi, maxval=jnp.pi)

    for q in q_samples:
        J = jacobian(chain, q)
        assert J.shape == (6, 3)
        assert jnp.isfinite(J).all()
        # Revolute joints always have unit angular columns
        np.testing.assert_allclose(jnp.linalg.norm(J[3:, :], axis=0), jnp.ones(3), atol=1e-10)

"""Tests for URDF parser functionality."""

from pathlib import Path

import jax.numpy as jnp
import numpy as np
import pytest

from limb_kinematics.core import JointLimit, JointType, KinematicTree
from limb_kinematics.errors import URDFParseError
from limb_kinematics.io import load_urdf, parse_urdf, read_joint_limits

FIXTURES = Path(__file__).parent / "fixtures"


def _robot(body: str) -> str:
    return f'<robot name="test">{body}</robot>'


def test_load_antsy_urdf():
    """Test loading the three-legged fixture and verify the tree structure."""
    tree = load_urdf(FIXTURES / "antsy.urdf")

    assert isinstance(tree, KinematicTree)
    assert tree.root == "base_link"
    assert tree.links[0] == "base_link"

    # base, imu, and four links per leg
    assert len(tree.links) == 14
    for i in range(3):
        for part in ("coxa", "femur", "tibia", "foot"):
            assert f"{part}_{i}" in tree.links

    # 9 revolute joints, plus 3 foot joints and the imu joint (fixed)
    assert tree.num_joints == 9
    assert tree.num_segments == 13
    assert tree.joints["foot_joint_1"].type is JointType.FIXED
    assert tree.joints["coxa_joint_2"].type is JointType.REVOLUTE

    # Parent relationships
    assert tree.parent_of("base_link") is None
    assert tree.parent_of("femur_1").name == "femur_joint_1"
    assert tree.parent_of("femur_1").parent == "coxa_1"


def test_transmission_joints_are_not_tree_joints():
    """<joint> elements nested in <transmission> must not become tree joints."""
    tree = load_urdf(FIXTURES / "antsy.urdf")
    assert list(tree.joints).count("coxa_joint_0") == 1
    assert tree.joints["coxa_joint_0"].parent == "base_link"


def test_joint_origin_and_axis():
    tree = load_urdf(FIXTURES / "antsy.urdf")

    coxa = tree.joints["coxa_joint_1"]
    yaw = 2.0943951023931953
    expected_rotation = jnp.array([
        [np.cos(yaw), -np.sin(yaw), 0.0],
        [np.sin(yaw), np.cos(yaw), 0.0],
        [0.0, 0.0, 1.0],
    ])
    np.testing.assert_allclose(coxa.origin[:3, :3], expected_rotation, atol=1e-12)
    np.testing.assert_allclose(coxa.origin[:3, 3], [-0.05, 0.08660254037844387, 0.0], atol=1e-12)
    np.testing.assert_allclose(coxa.origin[3, :], [0, 0, 0, 1], atol=1e-12)
    np.testing.assert_allclose(coxa.axis, [0.0, 0.0, 1.0])

    femur = tree.joints["femur_joint_1"]
    np.testing.assert_allclose(femur.axis, [0.0, 1.0, 0.0])
    np.testing.assert_allclose(femur.origin, jnp.eye(4).at[0, 3].set(0.05), atol=1e-12)


def test_axis_is_normalized():
    tree = parse_urdf(_robot(
        '<link name="a"/><link name="b"/>'
        '<joint name="j" type="revolute"><parent link="a"/><child link="b"/>'
        '<axis xyz="0 0 2"/><limit lower="-1" upper="1"/></joint>'
    ))
    np.testing.assert_allclose(tree.joints["j"].axis, [0.0, 0.0, 1.0])
    # Missing origin means identity
    np.testing.assert_allclose(tree.joints["j"].origin, jnp.eye(4))


def test_revisions_are_unique():
    text = (FIXTURES / "antsy.urdf").read_text()
    first = parse_urdf(text)
    second = parse_urdf(text)
    assert first.revision != second.revision
    assert first.links == second.links


@pytest.mark.parametrize("document, match", [
    ("<robot name='x'><link name='a'>", "Malformed"),
    ("not xml at all", "Malformed"),
    ("<model><link name='a'/></model>", "Expected <robot>"),
    (_robot(""), "no links"),
    (_robot("<link name='a'/><link name='b'/>"), "exactly one root"),
    (_robot("<link name='a'/><link name='a'/>"), "Duplicate link"),
    (_robot(
        "<link name='a'/><link name='b'/>"
        "<joint name='j' type='fixed'><parent link='a'/><child link='c'/></joint>"
    ), "unknown link 'c'"),
    (_robot(
        "<link name='a'/><link name='b'/><link name='c'/>"
        "<joint name='j' type='fixed'><parent link='a'/><child link='b'/></joint>"
        "<joint name='j' type='fixed'><parent link='a'/><child link='c'/></joint>"
    ), "Duplicate joint"),
    (_robot(
        "<link name='a'/><link name='b'/><link name='c'/>"
        "<joint name='j1' type='fixed'><parent link='a'/><child link='b'/></joint>"
        "<joint name='j2' type='fixed'><parent link='c'/><child link='b'/></joint>"
    ), "two parent joints"),
    (_robot(
        "<link name='a'/><link name='b'/>"
        "<joint name='j' type='floating'><parent link='a'/><child link='b'/></joint>"
    ), "unsupported type"),
    (_robot(
        "<link name='a'/><link name='b'/>"
        "<joint name='j' type='fixed'><parent link='a'/></joint>"
    ), "needs <parent"),
    (_robot(
        "<link name='a'/><link name='b'/>"
        "<joint name='j' type='fixed'><parent link='a'/><child link='b'/>"
        "<origin xyz='0 zero 0'/></joint>"
    ), "malformed origin xyz"),
    (_robot(
        "<link name='a'/><link name='b'/>"
        "<joint name='j' type='revolute'><parent link='a'/><child link='b'/>"
        "<axis xyz='0 0 0'/></joint>"
    ), "zero-length axis"),
])
def test_parse_errors(document, match):
    """Malformed documents raise URDFParseError with a useful message."""
    with pytest.raises(URDFParseError, match=match):
        parse_urdf(document)


def test_disconnected_cycle_is_rejected():
    """Links that form a cycle away from the root are unreachable."""
    document = _robot(
        "<link name='root'/><link name='a'/><link name='b'/>"
        "<joint name='j1' type='fixed'><parent link='a'/><child link='b'/></joint>"
        "<joint name='j2' type='fixed'><parent link='b'/><child link='a'/></joint>"
    )
    with pytest.raises(URDFParseError, match="not connected"):
        parse_urdf(document)


def test_parse_error_is_value_error():
    with pytest.raises(ValueError):
        parse_urdf("<robot>")


def test_read_joint_limits():
    declared = read_joint_limits((FIXTURES / "antsy.urdf").read_text())

    assert declared["coxa_joint_0"] == (JointType.REVOLUTE, JointLimit(-0.1, 0.4))
    assert declared["tibia_joint_2"] == (JointType.REVOLUTE, JointLimit(-2.5, 0.5))
    assert declared["foot_joint_2"] == (JointType.FIXED, None)
    assert len(declared) == 13


def test_read_joint_limits_without_bounds():
    declared = read_joint_limits(_robot(
        "<link name='a'/><link name='b'/>"
        "<joint name='j' type='continuous'><parent link='a'/><child link='b'/>"
        "<limit effort='1' velocity='1'/></joint>"
    ))
    assert declared["j"] == (JointType.CONTINUOUS, None)


def test_read_joint_limits_non_numeric():
    with pytest.raises(URDFParseError, match="non-numeric limit"):
        read_joint_limits(_robot(
            "<link name='a'/><link name='b'/>"
            "<joint name='j' type='revolute'><parent link='a'/><child link='b'/>"
            "<limit lower='-1' upper='one'/></joint>"
        ))

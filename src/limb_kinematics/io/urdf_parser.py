"""URDF parser for building kinematic trees from robot descriptions.

This module turns URDF text (or a URDF file) into an immutable KinematicTree,
and reads declared joint limits straight from the document for limit
alignment.
"""

import logging
import math
from collections import deque
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import jax.numpy as jnp
from lxml import etree

from limb_kinematics.core.model import Joint, JointLimit, JointType, KinematicTree
from limb_kinematics.errors import URDFParseError
from limb_kinematics.transforms import se3, so3

logger = logging.getLogger(__name__)

_JOINT_TYPES = {joint_type.value: joint_type for joint_type in JointType}


def parse_urdf(description: Union[str, bytes]) -> KinematicTree:
    """Build a KinematicTree from URDF text.

    Args:
        description: URDF document as text or bytes.

    Returns:
        KinematicTree: A new tree with a fresh revision.

    Raises:
        URDFParseError: If the document is not well-formed XML, is not a
            <robot>, or does not describe a single rooted tree.
    """
    root = _parse_document(description)

    # First pass: links and joints
    all_links = []
    for link in root.findall('link'):
        link_name = link.get('name')
        if not link_name:
            raise URDFParseError("Found a <link> without a name")
        if link_name in all_links:
            raise URDFParseError(f"Duplicate link '{link_name}'")
        all_links.append(link_name)
    if not all_links:
        raise URDFParseError("Robot description contains no links")

    joints: Dict[str, Joint] = {}
    parent_joint: Dict[str, str] = {}
    children: Dict[str, List[str]] = {name: [] for name in all_links}

    for joint_elem in root.findall('joint'):
        joint = _parse_joint(joint_elem)
        if joint.name in joints:
            raise URDFParseError(f"Duplicate joint '{joint.name}'")
        for link_name in (joint.parent, joint.child):
            if link_name not in children:
                raise URDFParseError(f"Joint '{joint.name}' refers to unknown link '{link_name}'")
        if joint.child in parent_joint:
            raise URDFParseError(
                f"Link '{joint.child}' has two parent joints: "
                f"'{parent_joint[joint.child]}' and '{joint.name}'"
            )
        joints[joint.name] = joint
        parent_joint[joint.child] = joint.name
        children[joint.parent].append(joint.child)

    # Find root link (not a child of any joint)
    root_links = [name for name in all_links if name not in parent_joint]
    if len(root_links) != 1:
        raise URDFParseError(f"Expected exactly one root link, found: {root_links}")
    root_link = root_links[0]

    # Order links using breadth-first traversal from root
    ordered_links = []
    queue = deque([root_link])
    while queue:
        current_link = queue.popleft()
        ordered_links.append(current_link)
        queue.extend(children[current_link])

    if len(ordered_links) != len(all_links):
        unreachable = sorted(set(all_links) - set(ordered_links))
        raise URDFParseError(f"Links not connected to root '{root_link}': {unreachable}")

    tree = KinematicTree(
        root=root_link,
        links=tuple(ordered_links),
        joints=joints,
        parent_joint=parent_joint,
    )
    logger.info(
        "Constructed kinematic tree rev %d from URDF with %d joints and %d segments.",
        tree.revision, tree.num_joints, tree.num_segments,
    )
    return tree


def load_urdf(urdf_path: Union[str, Path]) -> KinematicTree:
    """Load a URDF file and convert it to a KinematicTree."""
    return parse_urdf(Path(urdf_path).read_bytes())


def read_joint_limits(description: Union[str, bytes]) -> Dict[str, Tuple[Optional[JointType], Optional[JointLimit]]]:
    """Read every joint's type and declared limit from URDF text.

    Limits are taken from the ``lower`` and ``upper`` attributes of the
    joint's <limit> element. A joint whose <limit> is missing, or lacks one of
    the two bounds, maps to ``None``. Unknown joint types map to ``None``.

    Returns:
        Mapping joint name -> (joint type, limit or None).
    """
    root = _parse_document(description)
    declared = {}
    for joint_elem in root.findall('joint'):
        name = joint_elem.get('name')
        if not name:
            continue
        joint_type = _JOINT_TYPES.get(joint_elem.get('type'))
        declared[name] = (joint_type, _parse_limit(joint_elem, name))
    return declared


def _parse_document(description: Union[str, bytes]) -> etree._Element:
    if isinstance(description, str):
        description = description.encode('utf-8')
    try:
        root = etree.fromstring(description, parser=etree.XMLParser(remove_comments=True))
    except etree.XMLSyntaxError as exc:
        raise URDFParseError(f"Malformed robot description: {exc}") from exc
    if root.tag != 'robot':
        raise URDFParseError(f"Expected <robot> root element, got <{root.tag}>")
    return root


def _parse_joint(joint_elem: etree._Element) -> Joint:
    joint_name = joint_elem.get('name')
    if not joint_name:
        raise URDFParseError("Found a <joint> without a name")

    joint_type = _JOINT_TYPES.get(joint_elem.get('type'))
    if joint_type is None:
        raise URDFParseError(f"Joint '{joint_name}' has unsupported type '{joint_elem.get('type')}'")

    parent_elem = joint_elem.find('parent')
    child_elem = joint_elem.find('child')
    if parent_elem is None or child_elem is None or not parent_elem.get('link') or not child_elem.get('link'):
        raise URDFParseError(f"Joint '{joint_name}' needs <parent link=...> and <child link=...>")

    # Parse origin transform
    origin_elem = joint_elem.find('origin')
    if origin_elem is not None:
        xyz = _parse_vector(origin_elem.get('xyz', '0 0 0'), joint_name, 'origin xyz')
        rpy = _parse_vector(origin_elem.get('rpy', '0 0 0'), joint_name, 'origin rpy')
        origin = se3.from_position_and_rotation(jnp.array(xyz), so3.from_rpy(*rpy))
    else:
        origin = jnp.eye(4)

    # Parse joint axis, default Z
    axis_elem = joint_elem.find('axis')
    axis_xyz = [0.0, 0.0, 1.0]
    if axis_elem is not None:
        axis_xyz = _parse_vector(axis_elem.get('xyz', '0 0 1'), joint_name, 'axis')
    norm = math.sqrt(sum(component * component for component in axis_xyz))
    if joint_type.is_movable and norm < 1e-12:
        raise URDFParseError(f"Joint '{joint_name}' has a zero-length axis")
    axis = jnp.array(axis_xyz) / (norm if norm > 0.0 else 1.0)

    return Joint(
        name=joint_name,
        type=joint_type,
        parent=parent_elem.get('link'),
        child=child_elem.get('link'),
        origin=origin,
        axis=axis,
    )


def _parse_limit(joint_elem: etree._Element, joint_name: str) -> Optional[JointLimit]:
    limit_elem = joint_elem.find('limit')
    if limit_elem is None:
        return None
    lower, upper = limit_elem.get('lower'), limit_elem.get('upper')
    if lower is None or upper is None:
        return None
    try:
        return JointLimit(lower=float(lower), upper=float(upper))
    except ValueError as exc:
        raise URDFParseError(f"Joint '{joint_name}' has a non-numeric limit: {exc}") from exc


def _parse_vector(text: str, joint_name: str, what: str) -> List[float]:
    try:
        values = [float(x) for x in text.split()]
    except ValueError as exc:
        raise URDFParseError(f"Joint '{joint_name}' has a malformed {what}: '{text}'") from exc
    if len(values) != 3:
        raise URDFParseError(f"Joint '{joint_name}' {what} needs 3 values, got '{text}'")
    return values

"""
Command-line demo: load a URDF, solve one IK request, fold and clamp it.
"""

import argparse
import logging
import math
import sys
from typing import List, Optional

import numpy as np

from .config import KinematicsConfig, load_config
from .errors import KinematicsError
from .feed import DescriptionFeed
from .manager import KinematicsManager
from .solver import SolverSettings
from .transforms import se3

logger = logging.getLogger(__name__)

DEFAULT_FEET = ["foot_0", "foot_1", "foot_2"]
POSITION_ONLY_WEIGHTS = (1.0, 1.0, 1.0, 0.0, 0.0, 0.0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="limb-kinematics-demo",
        description="Solve inverse kinematics for one limb of a legged robot",
    )
    parser.add_argument("urdf", help="Path to the robot URDF file")
    parser.add_argument("--config", help="YAML configuration file (overrides --foot/--base)")
    parser.add_argument(
        "--foot", action="append", dest="feet", metavar="LINK",
        help="End link of a limb; repeat once per limb (default: foot_0 foot_1 foot_2)",
    )
    parser.add_argument("--base", default="base_link", help="Base link shared by all limbs")
    parser.add_argument("--limb", type=int, default=0, help="Limb index to solve for")
    parser.add_argument(
        "--target", type=float, nargs=3, default=[0.16, 0.24, -0.03], metavar=("X", "Y", "Z"),
        help="Target foot position in the base frame [m]",
    )
    parser.add_argument("--seed", type=float, nargs="+", help="Initial joint angles [rad]")
    parser.add_argument(
        "--position-only", action="store_true",
        help="Ignore orientation error (useful for 3-DOF legs)",
    )
    parser.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for the model")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        if args.config:
            config = load_config(args.config)
        else:
            solver = SolverSettings(weights=POSITION_ONLY_WEIGHTS) if args.position_only else None
            config = KinematicsConfig.for_feet(args.feet or DEFAULT_FEET, base_link=args.base, solver=solver)
    except KinematicsError as exc:
        logger.error("%s", exc)
        return 2

    feed = DescriptionFeed()
    manager = KinematicsManager(config, feed=feed)
    try:
        feed.publish_file(args.urdf)
    except OSError as exc:
        logger.error("Cannot read %s: %s", args.urdf, exc)
        return 2

    if not manager.wait_until_ready(timeout=args.timeout):
        logger.error("No usable robot model after %.1f s", args.timeout)
        return 2

    if not 0 <= args.limb < manager.num_limbs:
        logger.error("Limb %d out of range, %d limbs configured", args.limb, manager.num_limbs)
        return 2

    num_dof = len(manager.joint_names(args.limb))
    seed = np.zeros(num_dof) if args.seed is None else np.array(args.seed)
    if seed.shape != (num_dof,):
        logger.error("Limb %d has %d joints, got %d seed values", args.limb, num_dof, seed.shape[0])
        return 2

    solution = manager.solve_ik(args.limb, seed, se3.from_position(args.target))
    angles, clamped = manager.fold_and_clamp(args.limb, solution.joint_angles)

    print(f"solver return: {int(solution.code)} ({solution.code.name})")
    print(f"clamped:       {clamped}")
    print("joint angles [deg]: " + ", ".join(f"{math.degrees(a):.3f}" for a in angles))
    return 0 if solution.converged else 1


if __name__ == "__main__":
    sys.exit(main())

"""Limb kinematics manager.

The manager turns robot descriptions into per-limb models (chain, aligned
joint limits, IK solver) and serves IK and fold/clamp requests against them.

Model updates are all-or-nothing. A new description is parsed, every limb's
chain is derived from the new tree, limits are aligned against the same
document, and solvers are built once from the new chains; only then is the
new model published, in a single reference assignment. If any limb fails
along the way the update is aborted and the previous model keeps serving,
so a limb's chain, limits and solver always come from the same description.

Readers never lock: each request takes one reference to the current
immutable snapshot and works on it until it returns.
"""

import enum
import logging
import operator
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Tuple

import numpy as np

from . import chain as chain_ops
from .chain import extract_chain
from .config import KinematicsConfig
from .core import Chain, JointLimit, KinematicTree
from .errors import (
    ChainNotFoundError,
    KinematicsError,
    LimitInversionError,
    MissingJointLimitError,
    NotReadyError,
    URDFParseError,
)
from .feed import DescriptionFeed
from .io.urdf_parser import parse_urdf
from .limits import LimitInversion, align_limits
from .limits import fold_and_clamp as fold_and_clamp_angles
from .solver import IKSolution, SolverHandle, SolverPool

logger = logging.getLogger(__name__)

# Seconds between "still waiting" log lines in wait_until_ready.
WAIT_NOTICE_PERIOD = 5.0


class ManagerState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


@dataclass(frozen=True)
class LimbModel:
    """Chain, limits and solver of one limb, all from the same tree."""
    chain: Chain
    limits: Tuple[JointLimit, ...]
    solver: SolverHandle

    def __post_init__(self):
        if len(self.limits) != self.chain.num_dof:
            raise ValueError(
                f"{len(self.limits)} limits for a chain with {self.chain.num_dof} movable joints"
            )
        if self.solver.chain is not self.chain:
            raise ValueError(
                f"Solver is bound to chain rev {self.solver.chain.revision}, "
                f"not to the limb's chain rev {self.chain.revision}"
            )


@dataclass(frozen=True)
class ModelSnapshot:
    """Everything derived from one robot description."""
    tree: KinematicTree
    limbs: Tuple[LimbModel, ...]

    def __post_init__(self):
        for index, limb in enumerate(self.limbs):
            if limb.chain.revision != self.tree.revision:
                raise ValueError(
                    f"Limb {index} chain comes from tree rev {limb.chain.revision}, "
                    f"snapshot tree is rev {self.tree.revision}"
                )


@dataclass(frozen=True)
class ModelUpdate:
    """Outcome of a successful update_model call.

    Attributes:
        revision: Revision of the newly installed tree.
        chains: Per-limb summary (links, segment and joint counts).
        advisories: Inverted limits per limb index; limbs without any are
                    left out.
    """
    revision: int
    chains: Tuple[Mapping[str, object], ...]
    advisories: Mapping[int, Tuple[LimitInversion, ...]]

    @property
    def has_advisories(self) -> bool:
        return bool(self.advisories)


class KinematicsManager:
    """Owns the per-limb kinematic models and dispatches IK requests.

    Args:
        config: Limb definitions and solver constants.
        feed: Optional description feed. When given, every delivered
              document is applied with update_model; failures are logged and
              the previous model is kept.
    """

    def __init__(self, config: KinematicsConfig, feed: Optional[DescriptionFeed] = None):
        self.config = config
        self._pool = SolverPool(config.solver)
        self._snapshot: Optional[ModelSnapshot] = None
        self._update_lock = threading.Lock()
        self._ready = threading.Event()
        self._feed = feed
        if feed is not None:
            feed.subscribe(self._on_description)

    # State

    @property
    def state(self) -> ManagerState:
        return ManagerState.UNINITIALIZED if self._snapshot is None else ManagerState.READY

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def num_limbs(self) -> int:
        return len(self.config.limbs)

    @property
    def limb_names(self) -> Tuple[str, ...]:
        return tuple(limb.label for limb in self.config.limbs)

    @property
    def revision(self) -> Optional[int]:
        snapshot = self._snapshot
        return None if snapshot is None else snapshot.tree.revision

    @property
    def model(self) -> Optional[ModelSnapshot]:
        """The current snapshot, or None before the first successful update."""
        return self._snapshot

    # Model updates

    def update_model(self, description) -> ModelUpdate:
        """Rebuild every limb model from a new robot description.

        Args:
            description: URDF text.

        Returns:
            ModelUpdate describing the installed model.

        Raises:
            URDFParseError: The description could not be parsed.
            ChainNotFoundError: A limb's links are not connected in the new tree.
            MissingJointLimitError: A limb joint has no limit in the description.
            LimitInversionError: Inverted limits with ``strict_limits`` set.

        On any error the previous model (or the uninitialized state) is left
        exactly as it was.
        """
        with self._update_lock:
            try:
                tree = parse_urdf(description)
            except URDFParseError:
                logger.error("Failed to construct kinematic tree from URDF; keeping the previous model.")
                raise

            chains = []
            for index, limb in enumerate(self.config.limbs):
                try:
                    limb_chain = extract_chain(tree, limb.base_link, limb.end_link)
                except ChainNotFoundError as exc:
                    logger.error(
                        "Failed to extract chain %d: %s => %s.", index, limb.base_link, limb.end_link,
                    )
                    raise ChainNotFoundError(exc.base_link, exc.end_link, exc.reason, limb=index) from exc
                logger.info(
                    "Extracted chain %d with %d joints and %d segments to link %s.",
                    index, limb_chain.num_dof, limb_chain.num_segments, limb.end_link,
                )
                chains.append(limb_chain)

            limits = []
            advisories = {}
            for index, limb_chain in enumerate(chains):
                try:
                    aligned = align_limits(limb_chain, description)
                except MissingJointLimitError as exc:
                    logger.error("Failed to align joint limits of chain %d: %s", index, exc)
                    raise MissingJointLimitError(exc.joint_name, exc.reason, limb=index) from exc
                limits.append(aligned.limits)
                if aligned.advisories:
                    advisories[index] = aligned.advisories

            if advisories and self.config.strict_limits:
                raise LimitInversionError(inv for limb in advisories.values() for inv in limb)

            solvers = self._pool.rebuild(chains)
            snapshot = ModelSnapshot(
                tree=tree,
                limbs=tuple(
                    LimbModel(chain=limb_chain, limits=limb_limits, solver=solver)
                    for limb_chain, limb_limits, solver in zip(chains, limits, solvers)
                ),
            )

            was_ready = self._snapshot is not None
            self._snapshot = snapshot
            self._ready.set()

        if was_ready:
            logger.info("Received a new URDF, processed it and rebuilt the solvers (rev %d).", tree.revision)
        else:
            logger.info("Kinematics initialized with %d limbs (rev %d).", len(chains), tree.revision)
        return ModelUpdate(
            revision=tree.revision,
            chains=tuple(c.describe() for c in chains),
            advisories=advisories,
        )

    def _on_description(self, description: str) -> None:
        try:
            self.update_model(description)
        except KinematicsError as exc:
            logger.error("Ignoring robot description: %s", exc)

    def wait_until_ready(
        self,
        timeout: Optional[float] = None,
        poll_interval: float = 0.1,
        spin: Optional[Callable[[], object]] = None,
    ) -> bool:
        """Block until the first model is installed.

        ``spin`` is called before every wait slice so whatever delivers the
        description keeps running in this thread; it defaults to the attached
        feed's ``spin_some``.

        Args:
            timeout: Seconds to wait in total, or None to wait forever.
            poll_interval: Upper bound of a single wait slice.
            spin: Callable servicing the description source.

        Returns:
            True once ready, False if the timeout expired first.
        """
        if spin is None and self._feed is not None:
            spin = self._feed.spin_some
        deadline = None if timeout is None else time.monotonic() + timeout
        last_notice = None

        while True:
            if spin is not None:
                spin()
            if self._ready.is_set():
                return True
            now = time.monotonic()
            if deadline is not None and now >= deadline:
                return False
            if last_notice is None or now - last_notice >= WAIT_NOTICE_PERIOD:
                logger.info("Waiting until URDF received and solvers initialized.")
                last_notice = now
            wait = poll_interval if deadline is None else min(poll_interval, deadline - now)
            if self._ready.wait(wait):
                return True

    # Requests

    def solve_ik(self, limb: int, initial_angles, target_pose) -> IKSolution:
        """Solve IK for one limb.

        Args:
            limb: Limb index.
            initial_angles: (num_dof,) seed configuration.
            target_pose: (4, 4) goal pose of the limb's end link in its base frame.

        Returns:
            IKSolution with the solver's own convergence code. Use
            ``raise_for_status()`` to turn a non-converged solve into
            SolveFailedError.

        Raises:
            NotReadyError: No model has been built yet.
        """
        model = self._limb_model(limb)
        solution = model.solver.solve(initial_angles, target_pose)
        logger.debug(
            "IK limb %d: %s after %d iterations (error %.3e).",
            limb, solution.code.name, solution.iterations, solution.error,
        )
        return solution

    def fold_and_clamp(self, limb: int, angles) -> Tuple[np.ndarray, bool]:
        """Fold and clamp ``angles`` into the limb's joint limits.

        Returns:
            (adjusted angles, whether any joint had to be clamped)
        """
        return fold_and_clamp_angles(angles, self._limb_model(limb).limits)

    def chain(self, limb: int) -> Chain:
        return self._limb_model(limb).chain

    def joint_limits(self, limb: int) -> Tuple[JointLimit, ...]:
        return self._limb_model(limb).limits

    def joint_names(self, limb: int) -> Tuple[str, ...]:
        """Movable joint names of the limb, in joint vector order."""
        return self._limb_model(limb).chain.movable_joint_names

    def forward_kinematics(self, limb: int, angles) -> np.ndarray:
        """(4, 4) pose of the limb's end link for the given joint angles."""
        return np.asarray(chain_ops.forward_kinematics(self._limb_model(limb).chain, angles))

    def _limb_model(self, limb: int) -> LimbModel:
        limb = operator.index(limb)
        if not 0 <= limb < self.num_limbs:
            raise IndexError(f"Limb index {limb} out of range for {self.num_limbs} limbs")
        snapshot = self._snapshot
        if snapshot is None:
            raise NotReadyError("Solvers not yet set, have to wait until initialized")
        return snapshot.limbs[limb]

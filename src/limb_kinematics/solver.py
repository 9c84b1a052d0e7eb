"""Numerical position IK for serial chains.

The engine is a Levenberg-Marquardt iteration on the weighted 6D pose error
between the chain's end pose and the goal. A SolverHandle binds one chain and
one set of SolverSettings for its whole lifetime; the SolverPool builds a
fresh set of handles whenever the limb chains change.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from .chain import forward_kinematics, jacobian
from .core import Chain
from .errors import SolveFailedError
from .transforms import se3

logger = logging.getLogger(__name__)

# Position errors count fully, orientation errors a hundredth.
DEFAULT_WEIGHTS = (1.0, 1.0, 1.0, 0.01, 0.01, 0.01)

_LAMBDA_INITIAL = 1e-2
_LAMBDA_MIN = 1e-12
_LAMBDA_MAX = 1e12


class ConvergenceCode(enum.IntEnum):
    """Termination reason of a solve. Only SUCCESS means the goal was reached."""
    SUCCESS = 0
    MAX_ITERATIONS_EXCEEDED = -5
    GRADIENT_TOO_SMALL = -100
    INCREMENT_TOO_SMALL = -101


@dataclass(frozen=True)
class SolverSettings:
    """Fixed numeric parameters shared by every limb solver.

    Attributes:
        tolerance: Weighted pose error norm below which a solve succeeds.
        max_iterations: Iteration cap; doubles as the solve's time bound.
        epsilon: Gradient / joint increment magnitude below which the solver
                 gives up (singularity and local-minimum guard).
        weights: Per-component weights of the [position, rotation] error.
    """
    tolerance: float = 1e-5
    max_iterations: int = 100
    epsilon: float = 1e-15
    weights: Tuple[float, ...] = DEFAULT_WEIGHTS


@dataclass(frozen=True)
class IKSolution:
    """Final joint configuration of a solve and the solver's verdict."""
    joint_angles: np.ndarray
    code: ConvergenceCode
    error: float
    iterations: int

    @property
    def converged(self) -> bool:
        return self.code is ConvergenceCode.SUCCESS

    def raise_for_status(self) -> "IKSolution":
        """Raise SolveFailedError unless the solve converged; return self."""
        if not self.converged:
            raise SolveFailedError(self)
        return self


def solve(
    chain: Chain,
    q_init,
    target_pose,
    tolerance: float = 1e-5,
    max_iterations: int = 100,
    epsilon: float = 1e-15,
    weights: Sequence[float] = DEFAULT_WEIGHTS,
) -> IKSolution:
    """Solve position IK for ``chain`` without keeping a handle around.

    Args:
        chain: Chain to solve for.
        q_init: (num_dof,) seed configuration.
        target_pose: (4, 4) goal pose of the end link in the base link frame.
        tolerance: Weighted error norm that counts as converged.
        max_iterations: Iteration cap.
        epsilon: Gradient / increment threshold.
        weights: Six error weights.

    Returns:
        IKSolution with the last accepted configuration.
    """
    settings = SolverSettings(tolerance, max_iterations, epsilon, tuple(weights))
    return SolverHandle(chain, settings).solve(q_init, target_pose)


class SolverHandle:
    """IK solver permanently bound to one chain.

    The error/Jacobian evaluator is jit-compiled for this chain's topology on
    first use. A handle is never re-targeted at another chain; a new chain
    gets a new handle.
    """

    def __init__(self, chain: Chain, settings: SolverSettings = SolverSettings()):
        self.chain = chain
        self.settings = settings
        self._weights = jnp.asarray(settings.weights, dtype=jnp.float64)

        def evaluate(q: Array, target: Array) -> Tuple[Array, Array]:
            error = se3.pose_error(forward_kinematics(chain, q), target)
            return self._weights * error, self._weights[:, None] * jacobian(chain, q)

        self._evaluate = jax.jit(evaluate)

    @property
    def num_dof(self) -> int:
        return self.chain.num_dof

    def solve(self, q_init, target_pose) -> IKSolution:
        """Iterate from ``q_init`` toward ``target_pose``.

        Args:
            q_init: (num_dof,) seed configuration.
            target_pose: (4, 4) goal pose in the chain's base frame.

        Returns:
            IKSolution; ``code`` reports why the iteration stopped.
        """
        q = np.array(q_init, dtype=np.float64).reshape(-1)
        if q.shape != (self.num_dof,):
            raise ValueError(f"Expected {self.num_dof} initial joint angles, got {q.shape[0]}")
        target = jnp.asarray(target_pose, dtype=jnp.float64)
        if target.shape != (4, 4):
            raise ValueError(f"Target pose must be a 4x4 matrix, got shape {target.shape}")

        settings = self.settings
        error, J = (np.asarray(x) for x in self._evaluate(jnp.asarray(q), target))
        error_norm = float(np.linalg.norm(error))
        if error_norm < settings.tolerance:
            return IKSolution(q, ConvergenceCode.SUCCESS, error_norm, 0)
        if self.num_dof == 0:
            return IKSolution(q, ConvergenceCode.GRADIENT_TOO_SMALL, error_norm, 0)

        damping = _LAMBDA_INITIAL
        identity = np.eye(self.num_dof)
        for iteration in range(1, settings.max_iterations + 1):
            gradient = J.T @ error
            if np.max(np.abs(gradient)) < settings.epsilon:
                return IKSolution(q, ConvergenceCode.GRADIENT_TOO_SMALL, error_norm, iteration)

            step = np.linalg.solve(J.T @ J + damping * identity, gradient)
            if np.linalg.norm(step) < settings.epsilon:
                return IKSolution(q, ConvergenceCode.INCREMENT_TOO_SMALL, error_norm, iteration)

            q_new = q + step
            error_new, J_new = (np.asarray(x) for x in self._evaluate(jnp.asarray(q_new), target))
            error_norm_new = float(np.linalg.norm(error_new))

            if error_norm_new < error_norm:
                q, error, J, error_norm = q_new, error_new, J_new, error_norm_new
                damping = max(damping / 3.0, _LAMBDA_MIN)
                if error_norm < settings.tolerance:
                    return IKSolution(q, ConvergenceCode.SUCCESS, error_norm, iteration)
            else:
                damping = min(damping * 4.0, _LAMBDA_MAX)

        logger.debug(
            "IK for %s -> %s stopped after %d iterations with error %.3e",
            self.chain.base_link, self.chain.end_link, settings.max_iterations, error_norm,
        )
        return IKSolution(q, ConvergenceCode.MAX_ITERATIONS_EXCEEDED, error_norm, settings.max_iterations)


class SolverPool:
    """Builds one SolverHandle per limb chain with shared settings.

    The pool keeps no handles of its own: ``rebuild`` always returns brand new
    handles, and whoever holds them (the manager's model snapshot) owns them.
    """

    def __init__(self, settings: SolverSettings = SolverSettings()):
        self.settings = settings

    def rebuild(self, chains: Sequence[Chain]) -> Tuple[SolverHandle, ...]:
        handles = tuple(SolverHandle(chain, self.settings) for chain in chains)
        logger.debug(
            "Built %d IK solvers (tolerance=%g, max_iterations=%d, epsilon=%g).",
            len(handles), self.settings.tolerance, self.settings.max_iterations, self.settings.epsilon,
        )
        return handles

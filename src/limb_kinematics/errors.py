"""Exception hierarchy for limb_kinematics.

Every recoverable outcome of a model update or a solve request is reported
through one of these exceptions. Contract violations by the caller (an
out-of-range limb index, a joint vector of the wrong length) use the builtin
IndexError / ValueError instead.
"""

from typing import Optional


class KinematicsError(Exception):
    """Base class for all limb_kinematics errors."""


class URDFParseError(KinematicsError, ValueError):
    """The robot description could not be turned into a kinematic tree."""


class ChainNotFoundError(KinematicsError, LookupError):
    """No base-to-end path exists between two links of a tree."""

    def __init__(self, base_link: str, end_link: str, reason: str = "", limb: Optional[int] = None):
        self.base_link = base_link
        self.end_link = end_link
        self.limb = limb
        self.reason = reason
        message = f"No chain from '{base_link}' to '{end_link}'"
        if limb is not None:
            message = f"Limb {limb}: {message}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MissingJointLimitError(KinematicsError, LookupError):
    """A movable chain joint has no usable limit in the description."""

    def __init__(self, joint_name: str, reason: str = "", limb: Optional[int] = None):
        self.joint_name = joint_name
        self.limb = limb
        self.reason = reason
        message = f"No limit for joint '{joint_name}'"
        if limb is not None:
            message = f"Limb {limb}: {message}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class LimitInversionError(KinematicsError, ValueError):
    """Raised for upper < lower limits when the manager treats them as fatal."""

    def __init__(self, inversions):
        self.inversions = tuple(inversions)
        names = ", ".join(f"'{inv.joint_name}'" for inv in self.inversions)
        super().__init__(f"Inverted joint limits (upper < lower) for {names}")


class NotReadyError(KinematicsError, RuntimeError):
    """A request arrived before any robot model was successfully built."""


class SolveFailedError(KinematicsError, RuntimeError):
    """The numeric IK method did not converge.

    The final joint configuration and the solver's own code are kept on
    ``solution`` so a caller can inspect or reseed from them.
    """

    def __init__(self, solution):
        self.solution = solution
        super().__init__(
            f"IK did not converge: {solution.code.name} ({int(solution.code)}) "
            f"after {solution.iterations} iterations, error {solution.error:.3e}"
        )


class ConfigError(KinematicsError, ValueError):
    """Invalid or unreadable configuration."""

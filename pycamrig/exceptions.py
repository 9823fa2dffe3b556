"""
Exception types raised by pycamrig.

Argument and index problems use the built-in ValueError, TypeError and
IndexError. The classes here cover the cases callers need to tell apart.
"""

from typing import Optional

import numpy as np


class MissingChannelError(KeyError):
    """Raised when reading a frame channel that was never written."""

    def __init__(self, channel: str):
        self.channel = channel
        super().__init__(f"Channel '{channel}' does not exist.")

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the plain message
        return self.args[0]


class UndistortionConvergenceError(ArithmeticError):
    """
    Raised when the iterative undistortion does not reach its tolerance.

    Attributes:
        point: The distorted point that was being inverted.
        estimate: The last estimate of the undistorted point.
        residual_norm: Norm of the residual at the last estimate.
        iterations: Number of iterations that were run.
        reason: Why the loop stopped early, or None when the cap was reached.
    """

    def __init__(self, point: np.ndarray, estimate: np.ndarray,
                 residual_norm: float, iterations: int,
                 reason: Optional[str] = None):
        self.point = np.array(point, dtype=np.float64)
        self.estimate = np.array(estimate, dtype=np.float64)
        self.residual_norm = float(residual_norm)
        self.iterations = iterations
        self.reason = reason
        message = (f"Undistortion of {self.point.tolist()} did not converge after "
                   f"{iterations} iterations (residual {self.residual_norm:.3e})")
        if reason:
            message += f": {reason}"
        super().__init__(message)

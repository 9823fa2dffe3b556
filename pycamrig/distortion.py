import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, TextIO, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from .exceptions import UndistortionConvergenceError
from .types import (
    DEFAULT_MAX_COEFFICIENT_MAGNITUDE,
    DEFAULT_UNDISTORTION_MAX_ITERATIONS,
    DEFAULT_UNDISTORTION_TOLERANCE,
    DISTORTION_MODEL_IDS,
    DISTORTION_MODEL_NAMES,
    DistortionType,
)

logger = logging.getLogger(__name__)

ParamsLike = Union[NDArray[np.float64], Sequence[float]]
PointLike = Union[NDArray[np.float64], Sequence[float]]


def _as_point(point: PointLike) -> np.ndarray:
    p = np.array(point, dtype=np.float64)
    if p.shape != (2,):
        raise ValueError(f"point must have shape (2,), got {p.shape}")
    return p


class Distortion(ABC):
    """
    Lens distortion acting on points of the normalized image plane.

    Subclasses implement the math against externally supplied coefficients;
    the convenience methods below use the coefficients stored on the instance.
    Points are never modified in place, new arrays are returned.
    """

    distortion_type: DistortionType
    params: NDArray[np.float64]

    def __init__(self, params: Optional[ParamsLike] = None):
        params = np.zeros(self.parameter_count()) if params is None else params
        self.set_parameters(params)

    @staticmethod
    @abstractmethod
    def parameter_count() -> int:
        """Returns the number of coefficients used by this model."""

    @abstractmethod
    def distort_using_external_coefficients(self, params: ParamsLike, point: PointLike,
                                            with_jacobian: bool = False):
        """
        Apply the distortion to a normalized-plane point.

        Args:
            params: Distortion coefficients, ignoring the stored ones.
            point: (2,) undistorted point.
            with_jacobian: Also return the 2x2 Jacobian of the distorted point
                           with respect to the undistorted point.

        Returns:
            The (2,) distorted point, or a (point, jacobian) tuple.
        """

    @abstractmethod
    def distort_parameter_jacobian(self, params: ParamsLike, point: PointLike) -> np.ndarray:
        """Jacobian (2 x parameter_count) of the distorted point w.r.t. the coefficients."""

    @abstractmethod
    def undistort_using_external_coefficients(self, params: ParamsLike, point: PointLike) -> np.ndarray:
        """Inverse of distort_using_external_coefficients."""

    def parameters_valid(self, params: ParamsLike) -> bool:
        """Checks length and finiteness of a coefficient vector."""
        p = np.asarray(params, dtype=np.float64)
        return p.shape == (self.parameter_count(),) and bool(np.all(np.isfinite(p)))

    def distort(self, point: PointLike, with_jacobian: bool = False):
        return self.distort_using_external_coefficients(self.params, point, with_jacobian)

    def undistort(self, point: PointLike) -> np.ndarray:
        return self.undistort_using_external_coefficients(self.params, point)

    def get_parameters(self) -> np.ndarray:
        return self.params.copy()

    def set_parameters(self, params: ParamsLike) -> None:
        """
        Replace the stored coefficients.

        Raises:
            ValueError: If the coefficients fail parameters_valid().
        """
        p = np.array(params, dtype=np.float64).reshape(-1)
        if not self.parameters_valid(p):
            raise ValueError(
                f"Invalid parameters for {type(self).__name__} "
                f"(expects {self.parameter_count()}): {p.tolist()}"
            )
        self.params = p

    def print_parameters(self, out: TextIO, text: str = "") -> None:
        """Write the coefficients in human-readable form, prefixed by `text`."""
        name = DISTORTION_MODEL_NAMES[self.distortion_type.name].model_name
        out.write(f"{text}Distortion ({name}):\n")
        out.write(f"  coefficients: {self.params.tolist()}\n")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Distortion):
            return NotImplemented
        return (self.distortion_type == other.distortion_type and
                self.params.shape == other.params.shape and
                bool(np.array_equal(self.params, other.params)))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        params_str = np.array2string(self.params, precision=6, separator=', ', suppress_small=True)
        return f"{type(self).__name__}(params={params_str})"


class NullDistortion(Distortion):
    """Identity model for ideal pinhole lenses. Has no coefficients."""

    distortion_type = DistortionType.NONE

    @staticmethod
    def parameter_count() -> int:
        return 0

    def distort_using_external_coefficients(self, params, point, with_jacobian=False):
        p = _as_point(point)
        if with_jacobian:
            return p, np.eye(2)
        return p

    def distort_parameter_jacobian(self, params, point):
        _as_point(point)
        return np.zeros((2, 0))

    def undistort_using_external_coefficients(self, params, point):
        return _as_point(point)


class RadTanDistortion(Distortion):
    """
    Radial-tangential distortion with two radial (k1, k2) and two tangential
    (p1, p2) coefficients, ordered [k1, k2, p1, p2]:

        x' = x (1 + k1 r^2 + k2 r^4) + 2 p1 x y + p2 (r^2 + 2 x^2)
        y' = y (1 + k1 r^2 + k2 r^4) + p1 (r^2 + 2 y^2) + 2 p2 x y

    The inverse has no closed form and is computed with Gauss-Newton. It is
    bounded by `max_iterations` and raises UndistortionConvergenceError
    instead of returning an unconverged estimate.
    """

    distortion_type = DistortionType.RADTAN

    max_iterations: int
    tolerance: float
    max_coefficient_magnitude: float

    def __init__(self, params: Optional[ParamsLike] = None,
                 max_iterations: int = DEFAULT_UNDISTORTION_MAX_ITERATIONS,
                 tolerance: float = DEFAULT_UNDISTORTION_TOLERANCE,
                 max_coefficient_magnitude: float = DEFAULT_MAX_COEFFICIENT_MAGNITUDE):
        """
        Args:
            params: Coefficients [k1, k2, p1, p2]. Defaults to zeros.
            max_iterations: Iteration cap of the undistortion loop.
            tolerance: Residual norm (normalized-plane units) at which
                       undistortion stops.
            max_coefficient_magnitude: Coefficients larger than this in
                                       absolute value are rejected.

        Raises:
            ValueError: If the settings or coefficients are invalid.
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if not tolerance > 0.0:
            raise ValueError("tolerance must be positive")
        if not max_coefficient_magnitude > 0.0:
            raise ValueError("max_coefficient_magnitude must be positive")
        self.max_iterations = int(max_iterations)
        self.tolerance = float(tolerance)
        self.max_coefficient_magnitude = float(max_coefficient_magnitude)
        super().__init__(params)

    @staticmethod
    def parameter_count() -> int:
        return 4

    def parameters_valid(self, params: ParamsLike) -> bool:
        if not super().parameters_valid(params):
            return False
        return bool(np.all(np.abs(np.asarray(params, dtype=np.float64)) <= self.max_coefficient_magnitude))

    def _check_params(self, params: ParamsLike) -> np.ndarray:
        p = np.asarray(params, dtype=np.float64)
        if p.shape != (4,):
            raise ValueError(f"RadTanDistortion expects 4 coefficients, got shape {p.shape}")
        return p

    def distort_using_external_coefficients(self, params, point, with_jacobian=False):
        k1, k2, p1, p2 = self._check_params(params)
        x, y = _as_point(point)

        x2 = x * x
        y2 = y * y
        xy = x * y
        r2 = x2 + y2
        radial = 1.0 + k1 * r2 + k2 * r2 * r2

        distorted = np.array([
            x * radial + 2.0 * p1 * xy + p2 * (r2 + 2.0 * x2),
            y * radial + p1 * (r2 + 2.0 * y2) + 2.0 * p2 * xy,
        ])
        if not with_jacobian:
            return distorted

        # d(radial)/dx = 2 x (k1 + 2 k2 r^2), same for y
        dradial = k1 + 2.0 * k2 * r2
        cross = 2.0 * xy * dradial
        jacobian = np.array([
            [radial + 2.0 * x2 * dradial + 2.0 * p1 * y + 6.0 * p2 * x,
             cross + 2.0 * p1 * x + 2.0 * p2 * y],
            [cross + 2.0 * p1 * x + 2.0 * p2 * y,
             radial + 2.0 * y2 * dradial + 6.0 * p1 * y + 2.0 * p2 * x],
        ])
        return distorted, jacobian

    def distort_parameter_jacobian(self, params, point):
        self._check_params(params)
        x, y = _as_point(point)

        xy = x * y
        r2 = x * x + y * y
        r4 = r2 * r2
        return np.array([
            [x * r2, x * r4, 2.0 * xy, r2 + 2.0 * x * x],
            [y * r2, y * r4, r2 + 2.0 * y * y, 2.0 * xy],
        ])

    def undistort_using_external_coefficients(self, params, point):
        params = self._check_params(params)
        target = _as_point(point)
        if not np.all(np.isfinite(target)):
            raise ValueError(f"Cannot undistort non-finite point {target.tolist()}")

        estimate = target.copy()
        reason = None
        # Overflow is detected below through the non-finite checks
        with np.errstate(over='ignore', invalid='ignore'):
            for iteration in range(self.max_iterations + 1):
                distorted, jacobian = self.distort_using_external_coefficients(params, estimate, True)
                residual = target - distorted
                residual_norm = float(np.linalg.norm(residual))
                if not np.isfinite(residual_norm) or not np.all(np.isfinite(jacobian)):
                    reason = "distortion is not finite at the current estimate"
                    break
                if residual_norm < self.tolerance:
                    return estimate
                if iteration == self.max_iterations:
                    break
                try:
                    step = np.linalg.solve(jacobian, residual)
                except np.linalg.LinAlgError:
                    reason = "singular distortion Jacobian"
                    break
                if not np.all(np.isfinite(estimate + step)):
                    reason = "update step is not finite"
                    break
                estimate = estimate + step

        self._log_failure(target, residual_norm, iteration)
        raise UndistortionConvergenceError(target, estimate, residual_norm, iteration, reason)

    def _log_failure(self, target: np.ndarray, residual_norm: float, iterations: int) -> None:
        logger.warning("Undistortion of %s failed after %d iterations (residual %.3e)",
                       target.tolist(), iterations, residual_norm)

    def print_parameters(self, out: TextIO, text: str = "") -> None:
        k1, k2, p1, p2 = self.params
        out.write(f"{text}Distortion (RADTAN):\n")
        out.write(f"  k1 (radial):     {k1}\n")
        out.write(f"  k2 (radial):     {k2}\n")
        out.write(f"  p1 (tangential): {p1}\n")
        out.write(f"  p2 (tangential): {p2}\n")


_DISTORTION_CLASSES = {
    DistortionType.NONE: NullDistortion,
    DistortionType.RADTAN: RadTanDistortion,
}


def create_distortion(distortion_type: Union[DistortionType, str, int],
                      params: Optional[ParamsLike] = None) -> Distortion:
    """
    Build a distortion model by type, model name ("NONE", "RADTAN") or model id.

    Raises:
        ValueError: If the model is unknown or `params` has the wrong length.
    """
    if isinstance(distortion_type, DistortionType):
        model = DISTORTION_MODEL_IDS[distortion_type.value]
    elif isinstance(distortion_type, str):
        if distortion_type not in DISTORTION_MODEL_NAMES:
            raise ValueError(f"Unknown distortion model name: {distortion_type}")
        model = DISTORTION_MODEL_NAMES[distortion_type]
    else:
        if distortion_type not in DISTORTION_MODEL_IDS:
            raise ValueError(f"Unknown distortion model id: {distortion_type}")
        model = DISTORTION_MODEL_IDS[distortion_type]

    if params is not None and len(params) != model.num_params:
        raise ValueError(
            f"Distortion model '{model.model_name}' expects {model.num_params} parameters, "
            f"but received {len(params)}."
        )
    return _DISTORTION_CLASSES[DistortionType(model.model_id)](params)

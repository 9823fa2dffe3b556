import numpy as np
from typing import Optional, Union, List, Tuple
from numpy.typing import NDArray

from .distortion import Distortion, NullDistortion
from .types import CameraId, ProjectionResult


# Points closer to the image plane than this are treated as behind the camera
MIN_DEPTH = 1e-12


class Camera:
    """
    Pinhole camera with lens distortion.

    A camera is shared between rigs (NCameras) and frames (VisualFrame); neither
    owns it. The id is fixed at construction.
    """

    width: int
    height: int
    params: NDArray[np.float64] # Shape (4,): fu, fv, cu, cv. Read-only, see set_intrinsics

    _id: CameraId
    _distortion: Distortion
    _calibration_matrix: Optional[np.ndarray] = None # Cache for K matrix

    def __init__(self, width: int, height: int, params: Union[NDArray[np.float64], List[float]],
                 distortion: Optional[Distortion] = None, id: Optional[CameraId] = None):
        """
        Initializes a Camera instance.

        Args:
            width: Image width in pixels.
            height: Image height in pixels.
            params: Intrinsics [fu, fv, cu, cv] (focal lengths and principal point, pixels).
            distortion: Lens distortion model. Defaults to NullDistortion.
            id: Unique camera identifier. A random one is generated if None.

        Raises:
            ValueError: If the image size or intrinsics are invalid.
            TypeError: If `distortion` or `id` has the wrong type.
        """
        if width <= 0 or height <= 0:
            raise ValueError("Camera width and height must be positive integers.")

        if distortion is None:
            distortion = NullDistortion()
        if not isinstance(distortion, Distortion):
            raise TypeError(f"distortion must be a Distortion, got {type(distortion).__name__}")
        if id is None:
            id = CameraId.random()
        if not isinstance(id, CameraId):
            raise TypeError(f"id must be a CameraId, got {type(id).__name__}")

        self._id = id
        self.width = int(width)
        self.height = int(height)
        self._distortion = distortion
        self.set_intrinsics(params)

    @property
    def id(self) -> CameraId:
        return self._id

    @property
    def distortion(self) -> Distortion:
        return self._distortion

    def set_distortion(self, distortion: Distortion) -> None:
        if not isinstance(distortion, Distortion):
            raise TypeError(f"distortion must be a Distortion, got {type(distortion).__name__}")
        self._distortion = distortion

    @property
    def fu(self) -> float:
        return float(self.params[0])

    @property
    def fv(self) -> float:
        return float(self.params[1])

    @property
    def cu(self) -> float:
        return float(self.params[2])

    @property
    def cv(self) -> float:
        return float(self.params[3])

    def get_intrinsics(self) -> np.ndarray:
        return self.params.copy()

    def set_intrinsics(self, params: Union[NDArray[np.float64], List[float]]) -> None:
        """
        Replaces the intrinsics [fu, fv, cu, cv]. The stored array is read-only,
        so this is the only way to change them.

        Raises:
            ValueError: If there are not 4 finite values or a focal length is not positive.
        """
        params_array = np.array(params, dtype=np.float64).reshape(-1)
        if params_array.shape != (4,):
            raise ValueError(f"Camera expects 4 intrinsics [fu, fv, cu, cv], got {len(params_array)}.")
        if not np.all(np.isfinite(params_array)) or params_array[0] <= 0 or params_array[1] <= 0:
            raise ValueError(f"Camera focal lengths must be positive and finite: {params_array.tolist()}")

        params_array.flags.writeable = False
        self.params = params_array
        self._calibration_matrix = None # Invalidate cache

    def get_calibration_matrix(self) -> np.ndarray:
        """Returns the 3x3 calibration matrix (K). Cached after the first call."""
        if self._calibration_matrix is None:
            K = np.eye(3, dtype=np.float64)
            K[0, 0], K[1, 1], K[0, 2], K[1, 2] = self.params
            self._calibration_matrix = K
        return self._calibration_matrix.copy()

    def is_keypoint_visible(self, keypoint: Union[np.ndarray, Tuple[float, float]]) -> bool:
        """Checks whether a pixel lies inside the image box."""
        u, v = keypoint
        return bool(0.0 <= u < self.width and 0.0 <= v < self.height)

    def project3(self, point: Union[np.ndarray, Tuple[float, float, float]],
                 with_jacobian: bool = False):
        """
        Projects a point given in the camera frame to pixel coordinates.

        Args:
            point: (3,) point in the camera frame.
            with_jacobian: Also return the 2x3 Jacobian of the keypoint w.r.t. the point.

        Returns:
            (keypoint, ProjectionResult) or (keypoint, ProjectionResult, jacobian).
            For points at zero depth the keypoint is NaN and the Jacobian zero.
        """
        p = np.array(point, dtype=np.float64)
        if p.shape != (3,):
            raise ValueError(f"point must have shape (3,), got {p.shape}")

        x, y, z = p
        if not np.all(np.isfinite(p)):
            return self._projection_failure(ProjectionResult.PROJECTION_INVALID, with_jacobian)
        if abs(z) < MIN_DEPTH:
            return self._projection_failure(ProjectionResult.POINT_BEHIND_CAMERA, with_jacobian)

        inv_z = 1.0 / z
        normalized = np.array([x * inv_z, y * inv_z])
        distorted, J_dist = self._distortion.distort(normalized, with_jacobian=True)
        keypoint = np.array([self.fu * distorted[0] + self.cu,
                             self.fv * distorted[1] + self.cv])

        if z < MIN_DEPTH:
            result = ProjectionResult.POINT_BEHIND_CAMERA
        elif not np.all(np.isfinite(keypoint)):
            result = ProjectionResult.PROJECTION_INVALID
        elif not self.is_keypoint_visible(keypoint):
            result = ProjectionResult.KEYPOINT_OUTSIDE_IMAGE_BOX
        else:
            result = ProjectionResult.KEYPOINT_VISIBLE

        if not with_jacobian:
            return keypoint, result

        J_normalize = np.array([[inv_z, 0.0, -x * inv_z * inv_z],
                                [0.0, inv_z, -y * inv_z * inv_z]])
        jacobian = np.diag([self.fu, self.fv]) @ J_dist @ J_normalize
        return keypoint, result, jacobian

    def _projection_failure(self, result: ProjectionResult, with_jacobian: bool):
        keypoint = np.full(2, np.nan)
        if with_jacobian:
            return keypoint, result, np.zeros((2, 3))
        return keypoint, result

    def back_project3(self, keypoint: Union[np.ndarray, Tuple[float, float]]) -> np.ndarray:
        """
        Returns the bearing (x, y, 1) of a pixel, with the distortion removed.

        Raises:
            UndistortionConvergenceError: If the distortion cannot be inverted.
        """
        kp = np.array(keypoint, dtype=np.float64)
        if kp.shape != (2,):
            raise ValueError(f"keypoint must have shape (2,), got {kp.shape}")
        distorted = np.array([(kp[0] - self.cu) / self.fu, (kp[1] - self.cv) / self.fv])
        normalized = self._distortion.undistort(distorted)
        return np.array([normalized[0], normalized[1], 1.0])

    def __repr__(self) -> str:
        params_str = np.array2string(self.params, precision=3, separator=', ', suppress_small=True)
        return (f"Camera(id={self._id.hex_string()}, "
                f"width={self.width}, height={self.height}, "
                f"params={params_str}, distortion={self._distortion!r})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Camera):
            return NotImplemented
        return self._id == other._id and \
               self.width == other.width and \
               self.height == other.height and \
               bool(np.array_equal(self.params, other.params)) and \
               self._distortion == other._distortion

    def __hash__(self) -> int:
        # The id is the only immutable property
        return hash(self._id)

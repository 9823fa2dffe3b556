import numpy as np
from typing import Optional, Sequence, Union
from numpy.typing import NDArray


def qvec2rotmat(qvec: Union[NDArray[np.float64], Sequence[float]]) -> np.ndarray:
    """Convert a quaternion to a rotation matrix.

    Args:
        qvec: Quaternion as (w, x, y, z). Normalized before conversion.

    Returns:
        3x3 rotation matrix
    """
    q = np.asarray(qvec, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError("qvec must have shape (4,)")
    norm = np.linalg.norm(q)
    if norm == 0.0 or not np.isfinite(norm):
        raise ValueError(f"qvec must be a finite, non-zero quaternion, got {q.tolist()}")

    w, x, y, z = q / norm
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
        [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
        [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
    ], dtype=np.float64)


def rotmat2qvec(R: np.ndarray) -> np.ndarray:
    """Convert a rotation matrix to a quaternion with non-negative w.

    Args:
        R: 3x3 rotation matrix

    Returns:
        Quaternion as (w, x, y, z)
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError("R must have shape (3, 3)")

    # Pick the largest of (w, x, y, z) first to keep the division stable
    diag = np.array([np.trace(R), R[0, 0], R[1, 1], R[2, 2]])
    k = int(np.argmax(diag))
    q = np.zeros(4, dtype=np.float64)
    if k == 0:
        s = 2.0 * np.sqrt(1.0 + diag[0])
        q[:] = [0.25 * s, (R[2, 1] - R[1, 2]) / s, (R[0, 2] - R[2, 0]) / s, (R[1, 0] - R[0, 1]) / s]
    elif k == 1:
        s = 2.0 * np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        q[:] = [(R[2, 1] - R[1, 2]) / s, 0.25 * s, (R[0, 1] + R[1, 0]) / s, (R[0, 2] + R[2, 0]) / s]
    elif k == 2:
        s = 2.0 * np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        q[:] = [(R[0, 2] - R[2, 0]) / s, (R[0, 1] + R[1, 0]) / s, 0.25 * s, (R[1, 2] + R[2, 1]) / s]
    else:
        s = 2.0 * np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        q[:] = [(R[1, 0] - R[0, 1]) / s, (R[0, 2] + R[2, 0]) / s, (R[1, 2] + R[2, 1]) / s, 0.25 * s]

    if q[0] < 0:
        q = -q
    return q


class Transformation:
    """
    Rigid body transformation T_A_B mapping points from frame B into frame A:
    p_A = R_A_B @ p_B + t_A_B.

    Used for the body-to-camera extrinsics (T_C_B) of a rig.
    """

    rotation: NDArray[np.float64]     # Shape (3, 3)
    translation: NDArray[np.float64]  # Shape (3,)

    def __init__(self, rotation: Optional[np.ndarray] = None,
                 translation: Optional[Union[np.ndarray, Sequence[float]]] = None):
        """
        Args:
            rotation: 3x3 rotation matrix. Defaults to identity.
            translation: (3,) translation. Defaults to zero.

        Raises:
            ValueError: If the shapes are wrong or the rotation is not orthonormal.
        """
        R = np.eye(3) if rotation is None else np.array(rotation, dtype=np.float64)
        t = np.zeros(3) if translation is None else np.array(translation, dtype=np.float64)
        if R.shape != (3, 3):
            raise ValueError("rotation must have shape (3, 3)")
        if t.shape != (3,):
            raise ValueError("translation must have shape (3,)")
        if not np.all(np.isfinite(R)) or not np.all(np.isfinite(t)):
            raise ValueError("rotation and translation must be finite")
        if not np.allclose(R @ R.T, np.eye(3), atol=1e-6) or np.linalg.det(R) <= 0:
            raise ValueError("rotation must be a proper orthonormal matrix")

        self.rotation = R
        self.translation = t

    @classmethod
    def from_qvec_tvec(cls, qvec: Sequence[float], tvec: Sequence[float]) -> 'Transformation':
        """Build from a (w, x, y, z) quaternion and a translation."""
        return cls(qvec2rotmat(qvec), tvec)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> 'Transformation':
        """Build from a 4x4 homogeneous matrix."""
        T = np.asarray(matrix, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError("matrix must have shape (4, 4)")
        if not np.allclose(T[3], [0.0, 0.0, 0.0, 1.0]):
            raise ValueError("last row of a rigid transformation must be [0, 0, 0, 1]")
        return cls(T[:3, :3], T[:3, 3])

    def as_matrix(self) -> np.ndarray:
        """Returns the 4x4 homogeneous matrix."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def get_qvec(self) -> np.ndarray:
        return rotmat2qvec(self.rotation)

    def inverse(self) -> 'Transformation':
        # T^-1 = [R^T | -R^T t]
        R_T = self.rotation.T
        return Transformation(R_T, -R_T @ self.translation)

    def transform(self, points: np.ndarray) -> np.ndarray:
        """Apply to a (3,) point or a (3, N) block of points."""
        p = np.asarray(points, dtype=np.float64)
        if p.shape == (3,):
            return self.rotation @ p + self.translation
        if p.ndim == 2 and p.shape[0] == 3:
            return self.rotation @ p + self.translation[:, None]
        raise ValueError(f"points must have shape (3,) or (3, N), got {p.shape}")

    def __matmul__(self, other: 'Transformation') -> 'Transformation':
        if not isinstance(other, Transformation):
            return NotImplemented
        return Transformation(self.rotation @ other.rotation,
                              self.rotation @ other.translation + self.translation)

    def is_close(self, other: 'Transformation', atol: float = 1e-9) -> bool:
        """Element-wise comparison of rotation and translation within `atol`."""
        return bool(np.allclose(self.rotation, other.rotation, rtol=0.0, atol=atol) and
                    np.allclose(self.translation, other.translation, rtol=0.0, atol=atol))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transformation):
            return NotImplemented
        return bool(np.array_equal(self.rotation, other.rotation) and
                    np.array_equal(self.translation, other.translation))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        q_str = np.array2string(self.get_qvec(), precision=4, separator=', ', suppress_small=True)
        t_str = np.array2string(self.translation, precision=4, separator=', ', suppress_small=True)
        return f"Transformation(qvec={q_str}, tvec={t_str})"

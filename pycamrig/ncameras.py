import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .camera import Camera
from .transformation import Transformation
from .types import CameraId, NCamerasId, INVALID_CAMERA_INDEX

logger = logging.getLogger(__name__)


class NCameras:
    """
    A rig of cameras rigidly attached to a shared body frame B.

    Holds one camera and one extrinsic transformation T_C_B (body to camera)
    per index. The camera id to index map is derived from the camera list and
    rebuilt by every operation that changes the list.

    Attributes:
        id (NCamerasId): Unique id of the rig.
        label (str): Human-readable name.
    """

    id: Optional[NCamerasId]
    label: str

    _cameras: List[Camera]
    _T_C_B: List[Transformation]
    _camera_id_to_index: Dict[CameraId, int]

    def __init__(self, id: Optional[NCamerasId] = None,
                 T_C_B: Optional[Sequence[Transformation]] = None,
                 cameras: Optional[Sequence[Camera]] = None,
                 label: str = "") -> None:
        """
        Builds a rig. Called without cameras it gives an uninitialized, empty rig.

        Args:
            id: Rig identifier.
            T_C_B: One body-to-camera transformation per camera.
            cameras: The cameras, index 0..N-1.
            label: Human-readable name.

        Raises:
            ValueError: If the list lengths differ, a camera is None, or two
                        cameras share an id.
            TypeError: If an element has the wrong type.
        """
        self._cameras = []
        self._T_C_B = []
        self._camera_id_to_index = {}
        self.id = id
        self.label = label
        self._initialized = False

        if cameras is None and T_C_B is None:
            return

        cameras = list(cameras) if cameras is not None else []
        T_C_B = list(T_C_B) if T_C_B is not None else []
        if id is not None and not isinstance(id, NCamerasId):
            raise TypeError(f"id must be a NCamerasId, got {type(id).__name__}")
        if len(cameras) != len(T_C_B):
            raise ValueError(
                f"Number of cameras ({len(cameras)}) does not match "
                f"number of transformations ({len(T_C_B)})"
            )
        for i, (camera, T) in enumerate(zip(cameras, T_C_B)):
            self._check_camera(i, camera)
            self._check_transformation(i, T)

        self._cameras = cameras
        self._T_C_B = T_C_B
        self._rebuild_index()
        self._initialized = True
        logger.debug("Built camera rig '%s' with %d cameras", label, len(cameras))

    @classmethod
    def from_property_tree(cls, property_tree: Any) -> 'NCameras':
        """Construction from a configuration tree is not supported."""
        raise NotImplementedError("Building NCameras from a property tree is not implemented.")

    @staticmethod
    def _check_camera(index: int, camera: Optional[Camera]) -> None:
        if camera is None:
            raise ValueError(f"Camera at index {index} is None")
        if not isinstance(camera, Camera):
            raise TypeError(f"Camera at index {index} must be a Camera, got {type(camera).__name__}")

    @staticmethod
    def _check_transformation(index: int, T: Optional[Transformation]) -> None:
        if not isinstance(T, Transformation):
            raise TypeError(f"T_C_B at index {index} must be a Transformation, got {type(T).__name__}")

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._cameras):
            raise IndexError(f"Camera index {index} out of range for rig with {len(self._cameras)} cameras")

    def _rebuild_index(self) -> None:
        """Derives the camera id to index map, rejecting duplicate ids."""
        id_to_index: Dict[CameraId, int] = {}
        for i, camera in enumerate(self._cameras):
            if camera.id in id_to_index:
                raise ValueError(
                    f"Camera id {camera.id.hex_string()} used at indices "
                    f"{id_to_index[camera.id]} and {i}"
                )
            id_to_index[camera.id] = i
        self._camera_id_to_index = id_to_index

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def num_cameras(self) -> int:
        return len(self._cameras)

    def get_num_cameras(self) -> int:
        return len(self._cameras)

    def get_T_C_B(self, index: int) -> Transformation:
        """Returns the transformation from the body frame to camera `index`."""
        self._check_index(index)
        return self._T_C_B[index]

    def set_T_C_B(self, index: int, T_Ci_B: Transformation) -> None:
        self._check_index(index)
        self._check_transformation(index, T_Ci_B)
        self._T_C_B[index] = T_Ci_B

    def get_transformation_vector(self) -> Tuple[Transformation, ...]:
        return tuple(self._T_C_B)

    def get_camera(self, index: int) -> Camera:
        self._check_index(index)
        return self._cameras[index]

    def get_camera_mutable(self, index: int) -> Camera:
        """Returns the shared camera object; changes are seen by every holder."""
        self._check_index(index)
        return self._cameras[index]

    def set_camera(self, index: int, camera: Camera) -> None:
        """
        Replaces the camera at `index` and updates the id to index map.

        Raises:
            IndexError: If `index` is out of range.
            ValueError: If `camera` is None or its id belongs to another index.
        """
        self._check_index(index)
        self._check_camera(index, camera)
        existing = self._camera_id_to_index.get(camera.id, index)
        if existing != index:
            raise ValueError(
                f"Camera id {camera.id.hex_string()} is already used at index {existing}"
            )
        self._cameras[index] = camera
        self._rebuild_index()
        logger.debug("Replaced camera %d of rig '%s'", index, self.label)

    def get_camera_vector(self) -> Tuple[Camera, ...]:
        return tuple(self._cameras)

    def get_camera_id(self, index: int) -> CameraId:
        self._check_index(index)
        return self._cameras[index].id

    def has_camera_with_id(self, id: CameraId) -> bool:
        return id in self._camera_id_to_index

    def get_camera_index(self, id: CameraId) -> int:
        """Returns the index of the camera with `id`, or INVALID_CAMERA_INDEX."""
        return self._camera_id_to_index.get(id, INVALID_CAMERA_INDEX)

    def __len__(self) -> int:
        return len(self._cameras)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NCameras):
            return NotImplemented
        if self.num_cameras() != other.num_cameras() or \
           self.label != other.label or \
           self.id != other.id:
            return False
        return all(camera == other_camera and T == other_T
                   for camera, other_camera, T, other_T in
                   zip(self._cameras, other._cameras, self._T_C_B, other._T_C_B))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        rig_id = self.id.hex_string() if self.id is not None else None
        return f"NCameras(id={rig_id}, label='{self.label}', {self.num_cameras()} cameras)"

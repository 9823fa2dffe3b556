import uuid
from enum import Enum
from typing import Optional

# A special value returned when a camera id is not part of a rig
INVALID_CAMERA_INDEX = -1

# Timestamps are signed 64-bit nanosecond counts, -1 means "not set"
INVALID_TIMESTAMP = -1
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Numeric defaults for the iterative undistortion
DEFAULT_UNDISTORTION_MAX_ITERATIONS = 20
DEFAULT_UNDISTORTION_TOLERANCE = 1e-12
DEFAULT_MAX_COEFFICIENT_MAGNITUDE = 10.0


class UniqueId:
    """
    Opaque 128-bit identifier.
    Ids of different subclasses never compare equal, even with the same value.
    """

    __slots__ = ('_value',)

    def __init__(self, value: Optional[int] = None):
        """
        Args:
            value: Integer in [0, 2**128). None gives the invalid (all-zero) id.
        """
        value = 0 if value is None else int(value)
        if value < 0 or value >= 2 ** 128:
            raise ValueError(f"{type(self).__name__} value must fit in 128 bits, got {value}")
        self._value = value

    @classmethod
    def random(cls) -> 'UniqueId':
        return cls(uuid.uuid4().int)

    @classmethod
    def from_hex_string(cls, hex_string: str) -> 'UniqueId':
        if len(hex_string) != 32:
            raise ValueError(f"Expected 32 hex digits, got '{hex_string}'")
        return cls(int(hex_string, 16))

    def hex_string(self) -> str:
        return f"{self._value:032x}"

    def is_valid(self) -> bool:
        return self._value != 0

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._value == other._value  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._value))

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.hex_string()}')"


class CameraId(UniqueId):
    __slots__ = ()


class FrameId(UniqueId):
    __slots__ = ()


class NCamerasId(UniqueId):
    __slots__ = ()


class ProjectionResult(Enum):
    """Outcome of projecting a 3D point into a camera."""
    KEYPOINT_VISIBLE = 0
    KEYPOINT_OUTSIDE_IMAGE_BOX = 1
    POINT_BEHIND_CAMERA = 2
    PROJECTION_INVALID = 3

    def __bool__(self) -> bool:
        return self is ProjectionResult.KEYPOINT_VISIBLE


class DistortionType(Enum):
    """Enumeration of the supported lens distortion models."""
    NONE = 0
    RADTAN = 1


class DistortionModel:
    """Distortion model information."""

    model_id: int
    model_name: str
    num_params: int

    def __init__(self, model_id: int, model_name: str, num_params: int):
        """Initialize a distortion model entry.

        Args:
            model_id: Numeric ID of the distortion model
            model_name: String name of the distortion model
            num_params: Number of coefficients for this model
        """
        self.model_id = model_id
        self.model_name = model_name
        self.num_params = num_params

DISTORTION_MODELS = [
    DistortionModel(DistortionType.NONE.value, "NONE", 0),
    DistortionModel(DistortionType.RADTAN.value, "RADTAN", 4),
]

DISTORTION_MODEL_IDS = {model.model_id: model for model in DISTORTION_MODELS}
DISTORTION_MODEL_NAMES = {model.model_name: model for model in DISTORTION_MODELS}

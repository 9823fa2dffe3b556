import numbers
import numpy as np
from typing import Any, Optional
from numpy.typing import NDArray

from .camera import Camera
from .channels import ChannelGroup, ChannelKind
from .types import FrameId, INVALID_TIMESTAMP, INT64_MIN, INT64_MAX

# Names of the built-in channels
KEYPOINT_MEASUREMENTS = "VISUAL_KEYPOINT_MEASUREMENTS"
KEYPOINT_MEASUREMENT_UNCERTAINTIES = "VISUAL_KEYPOINT_MEASUREMENT_UNCERTAINTIES"
KEYPOINT_ORIENTATIONS = "VISUAL_KEYPOINT_ORIENTATIONS"
KEYPOINT_SCALES = "VISUAL_KEYPOINT_SCALES"
DESCRIPTORS = "DESCRIPTORS"
RAW_IMAGE = "RAW_IMAGE"

# Channels holding one entry per keypoint; they must agree on the count
_KEYPOINT_CHANNEL_KINDS = {
    KEYPOINT_MEASUREMENTS: ChannelKind.MATRIX,
    KEYPOINT_MEASUREMENT_UNCERTAINTIES: ChannelKind.VECTOR,
    KEYPOINT_ORIENTATIONS: ChannelKind.VECTOR,
    KEYPOINT_SCALES: ChannelKind.VECTOR,
    DESCRIPTORS: ChannelKind.DESCRIPTORS,
}
_RESERVED_CHANNELS = frozenset(_KEYPOINT_CHANNEL_KINDS) | {RAW_IMAGE}


def _read_only(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        view = value.view()
        view.flags.writeable = False
        return view
    return value


def _check_timestamp(stamp: int) -> int:
    if isinstance(stamp, bool) or not isinstance(stamp, numbers.Integral):
        raise TypeError(f"Timestamp must be an integer number of nanoseconds, got {stamp!r}")
    stamp = int(stamp)
    if not INT64_MIN <= stamp <= INT64_MAX:
        raise ValueError(f"Timestamp {stamp} does not fit in a signed 64-bit integer")
    return stamp


class VisualFrame:
    """
    An image and its keypoints from a single camera.

    Keypoint data, descriptors, the raw image and any extra data live in named
    channels. A channel that was never written is absent: test with the has_*
    methods before calling the matching getter, which raises
    MissingChannelError otherwise.

    Getters return read-only views, the *_mutable getters return the stored
    arrays. Setters copy their input, except set_image which stores a
    reference; copy the image first if the frame should own it.

    Three timestamps are kept, all integer nanoseconds:
      timestamp: the one used for processing, possibly corrected.
      hardware_timestamp: device clock, scale and offset differ per device.
      system_timestamp: host time at which the image was received.
    """

    id: Optional[FrameId]

    _camera_geometry: Optional[Camera]
    _channels: ChannelGroup

    def __init__(self, id: Optional[FrameId] = None, camera: Optional[Camera] = None,
                 timestamp: int = INVALID_TIMESTAMP,
                 hardware_timestamp: int = INVALID_TIMESTAMP,
                 system_timestamp: int = INVALID_TIMESTAMP):
        if id is not None and not isinstance(id, FrameId):
            raise TypeError(f"id must be a FrameId, got {type(id).__name__}")
        self.id = id
        self._camera_geometry = None
        if camera is not None:
            self.set_camera_geometry(camera)
        self._timestamp = _check_timestamp(timestamp)
        self._hardware_timestamp = _check_timestamp(hardware_timestamp)
        self._system_timestamp = _check_timestamp(system_timestamp)
        self._channels = ChannelGroup()

    # --- Timestamps ---

    @property
    def timestamp(self) -> int:
        return self._timestamp

    @timestamp.setter
    def timestamp(self, stamp: int) -> None:
        self._timestamp = _check_timestamp(stamp)

    @property
    def hardware_timestamp(self) -> int:
        return self._hardware_timestamp

    @hardware_timestamp.setter
    def hardware_timestamp(self, stamp: int) -> None:
        self._hardware_timestamp = _check_timestamp(stamp)

    @property
    def system_timestamp(self) -> int:
        return self._system_timestamp

    @system_timestamp.setter
    def system_timestamp(self, stamp: int) -> None:
        self._system_timestamp = _check_timestamp(stamp)

    # --- Camera ---

    def get_camera_geometry(self) -> Optional[Camera]:
        return self._camera_geometry

    def set_camera_geometry(self, camera: Optional[Camera]) -> None:
        """Associates the frame with a shared camera (not copied)."""
        if camera is not None and not isinstance(camera, Camera):
            raise TypeError(f"camera must be a Camera, got {type(camera).__name__}")
        self._camera_geometry = camera

    # --- Generic channels ---

    def add_channel(self, name: str, kind: ChannelKind = ChannelKind.OBJECT) -> None:
        """
        Adds an empty extension channel.

        Raises:
            ValueError: If `name` is one of the built-in channels, which only
                        come into existence through their setters.
        """
        if name in _RESERVED_CHANNELS:
            raise ValueError(f"Channel '{name}' is built in; use its setter to write it")
        self._channels.add_channel(name, kind)

    def has_channel(self, name: str) -> bool:
        return self._channels.has_channel(name)

    def get_channel_data(self, name: str, kind: Optional[ChannelKind] = None) -> Any:
        return _read_only(self._channels.get_channel_data(name, kind))

    def get_channel_data_mutable(self, name: str, kind: Optional[ChannelKind] = None) -> Any:
        return self._channels.get_channel_data(name, kind)

    def set_channel_data(self, name: str, data: Any, kind: ChannelKind = ChannelKind.OBJECT) -> None:
        """
        Stores `data` in channel `name`, creating it if needed.

        Raises:
            TypeError: If the channel exists with another kind.
            ValueError: If a per-keypoint channel disagrees on the keypoint count.
        """
        if name in _KEYPOINT_CHANNEL_KINDS:
            if kind is not _KEYPOINT_CHANNEL_KINDS[name]:
                raise TypeError(f"Channel '{name}' requires kind {_KEYPOINT_CHANNEL_KINDS[name].name}")
            self._set_keypoint_channel(name, data)
        elif name == RAW_IMAGE:
            if kind is not ChannelKind.IMAGE:
                raise TypeError(f"Channel '{name}' requires kind {ChannelKind.IMAGE.name}")
            self.set_image(data)
        else:
            self._channels.set_channel_data(name, data, kind)

    def _set_keypoint_channel(self, name: str, data: Any) -> None:
        kind = _KEYPOINT_CHANNEL_KINDS[name]
        if kind is ChannelKind.MATRIX:
            data = np.array(data, dtype=np.float64)
            if data.ndim != 2 or data.shape[0] != 2:
                raise ValueError(f"Keypoint measurements must be a 2xN array, got shape {data.shape}")

        # Validate on a scratch group so a rejected value leaves the frame unchanged
        scratch = ChannelGroup()
        scratch.set_channel_data(name, data, kind)
        value = scratch.get_channel_data(name)
        count = value.shape[-1]
        for other in _KEYPOINT_CHANNEL_KINDS:
            if other != name and self.has_channel(other):
                other_count = self._keypoint_count(other)
                if other_count != count:
                    raise ValueError(
                        f"Channel '{name}' has {count} keypoints but channel "
                        f"'{other}' has {other_count}"
                    )
        self._channels.set_channel_data(name, value, kind)

    def _keypoint_count(self, name: str) -> int:
        return self._channels.get_channel_data(name).shape[-1]

    def get_num_keypoints(self) -> int:
        """Keypoint count shared by the per-keypoint channels, 0 if none is present."""
        for name in _KEYPOINT_CHANNEL_KINDS:
            if self.has_channel(name):
                return self._keypoint_count(name)
        return 0

    def clear_keypoints(self) -> None:
        """Removes every per-keypoint channel."""
        for name in _KEYPOINT_CHANNEL_KINDS:
            if self.has_channel(name):
                self._channels.remove_channel(name)

    def _get_entry(self, name: str, index: int) -> Any:
        data = self._channels.get_channel_data(name)
        count = data.shape[-1]
        if not 0 <= index < count:
            raise IndexError(f"Index {index} out of range for channel '{name}' with {count} entries")
        return data[..., index]

    # --- Presence ---

    def has_keypoint_measurements(self) -> bool:
        return self.has_channel(KEYPOINT_MEASUREMENTS)

    def has_keypoint_measurement_uncertainties(self) -> bool:
        return self.has_channel(KEYPOINT_MEASUREMENT_UNCERTAINTIES)

    def has_keypoint_orientations(self) -> bool:
        return self.has_channel(KEYPOINT_ORIENTATIONS)

    def has_keypoint_scales(self) -> bool:
        return self.has_channel(KEYPOINT_SCALES)

    def has_descriptors(self) -> bool:
        return self.has_channel(DESCRIPTORS)

    def has_image(self) -> bool:
        return self.has_channel(RAW_IMAGE)

    # --- Getters ---

    def get_keypoint_measurements(self) -> NDArray[np.float64]:
        """The 2xN keypoint pixel coordinates."""
        return self.get_channel_data(KEYPOINT_MEASUREMENTS)

    def get_keypoint_measurement_uncertainties(self) -> NDArray[np.float64]:
        return self.get_channel_data(KEYPOINT_MEASUREMENT_UNCERTAINTIES)

    def get_keypoint_orientations(self) -> NDArray[np.float64]:
        return self.get_channel_data(KEYPOINT_ORIENTATIONS)

    def get_keypoint_scales(self) -> NDArray[np.float64]:
        return self.get_channel_data(KEYPOINT_SCALES)

    def get_descriptors(self) -> NDArray[np.uint8]:
        """The DxN descriptor bytes, one column per keypoint."""
        return self.get_channel_data(DESCRIPTORS)

    def get_image(self) -> np.ndarray:
        return self.get_channel_data(RAW_IMAGE)

    def get_keypoint_measurements_mutable(self) -> NDArray[np.float64]:
        return self.get_channel_data_mutable(KEYPOINT_MEASUREMENTS)

    def get_keypoint_measurement_uncertainties_mutable(self) -> NDArray[np.float64]:
        return self.get_channel_data_mutable(KEYPOINT_MEASUREMENT_UNCERTAINTIES)

    def get_keypoint_orientations_mutable(self) -> NDArray[np.float64]:
        return self.get_channel_data_mutable(KEYPOINT_ORIENTATIONS)

    def get_keypoint_scales_mutable(self) -> NDArray[np.float64]:
        return self.get_channel_data_mutable(KEYPOINT_SCALES)

    def get_descriptors_mutable(self) -> NDArray[np.uint8]:
        return self.get_channel_data_mutable(DESCRIPTORS)

    def get_image_mutable(self) -> np.ndarray:
        return self.get_channel_data_mutable(RAW_IMAGE)

    # --- Per-keypoint access ---

    def get_keypoint_measurement(self, index: int) -> NDArray[np.float64]:
        """The (2,) pixel coordinates of keypoint `index`."""
        return _read_only(self._get_entry(KEYPOINT_MEASUREMENTS, index))

    def get_keypoint_measurement_uncertainty(self, index: int) -> float:
        return float(self._get_entry(KEYPOINT_MEASUREMENT_UNCERTAINTIES, index))

    def get_keypoint_orientation(self, index: int) -> float:
        return float(self._get_entry(KEYPOINT_ORIENTATIONS, index))

    def get_keypoint_scale(self, index: int) -> float:
        return float(self._get_entry(KEYPOINT_SCALES, index))

    def get_descriptor(self, index: int) -> NDArray[np.uint8]:
        """The descriptor bytes of keypoint `index`."""
        return _read_only(self._get_entry(DESCRIPTORS, index))

    # --- Setters ---

    def set_keypoint_measurements(self, keypoints: NDArray[np.float64]) -> None:
        self._set_keypoint_channel(KEYPOINT_MEASUREMENTS, keypoints)

    def set_keypoint_measurement_uncertainties(self, uncertainties: NDArray[np.float64]) -> None:
        self._set_keypoint_channel(KEYPOINT_MEASUREMENT_UNCERTAINTIES, uncertainties)

    def set_keypoint_orientations(self, orientations: NDArray[np.float64]) -> None:
        self._set_keypoint_channel(KEYPOINT_ORIENTATIONS, orientations)

    def set_keypoint_scales(self, scales: NDArray[np.float64]) -> None:
        self._set_keypoint_channel(KEYPOINT_SCALES, scales)

    def set_descriptors(self, descriptors: NDArray[np.uint8]) -> None:
        self._set_keypoint_channel(DESCRIPTORS, descriptors)

    def set_image(self, image: np.ndarray) -> None:
        """Stores a reference to `image`, not a copy."""
        self._channels.set_channel_data(RAW_IMAGE, image, ChannelKind.IMAGE)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VisualFrame):
            return NotImplemented
        return self.id == other.id and \
               self._timestamp == other._timestamp and \
               self._hardware_timestamp == other._hardware_timestamp and \
               self._system_timestamp == other._system_timestamp and \
               self._camera_geometry == other._camera_geometry and \
               self._channels == other._channels

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        frame_id = self.id.hex_string() if self.id is not None else None
        return (f"VisualFrame(id={frame_id}, timestamp={self._timestamp}, "
                f"{self.get_num_keypoints()} keypoints, channels=[{', '.join(self._channels)}])")

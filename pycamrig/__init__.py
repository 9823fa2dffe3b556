__version__ = "0.1.0"

__all__ = [
    # Core classes
    "Camera",
    "NCameras",
    "VisualFrame",
    "Transformation",
    # Distortion models
    "Distortion",
    "NullDistortion",
    "RadTanDistortion",
    "create_distortion",
    # Channels
    "Channel",
    "ChannelGroup",
    "ChannelKind",
    # Types & Constants
    "CameraId",
    "FrameId",
    "NCamerasId",
    "DistortionType",
    "DistortionModel",
    "DISTORTION_MODELS",
    "DISTORTION_MODEL_IDS",
    "DISTORTION_MODEL_NAMES",
    "ProjectionResult",
    "INVALID_CAMERA_INDEX",
    # Exceptions
    "MissingChannelError",
    "UndistortionConvergenceError",
    # Utility functions
    "qvec2rotmat",
    "rotmat2qvec",
]

import logging

from .camera import Camera
from .channels import Channel, ChannelGroup, ChannelKind
from .distortion import Distortion, NullDistortion, RadTanDistortion, create_distortion
from .exceptions import MissingChannelError, UndistortionConvergenceError
from .ncameras import NCameras
from .transformation import Transformation, qvec2rotmat, rotmat2qvec
from .types import (
    CameraId,
    FrameId,
    NCamerasId,
    DistortionType,
    DistortionModel,
    DISTORTION_MODELS,
    DISTORTION_MODEL_IDS,
    DISTORTION_MODEL_NAMES,
    ProjectionResult,
    INVALID_CAMERA_INDEX,
)
from .visual_frame import VisualFrame

# Library logging: applications attach their own handlers
logging.getLogger(__name__).addHandler(logging.NullHandler())

"""
fSpy Project Import Package

A Python package to decode fSpy camera-calibration project files (*.fspy)
and derive a camera pose and absolute focal length from them.

Pipeline:
    .fspy file → header + JSON state + image bytes → Project
    Project.camera_parameters → CameraPose (location, right, up, forward)
                              → absolute focal length for a sensor size

Conventions:
    - Camera transform: stored as 4 rows of 4 floats, transposed before use
    - Camera looks down its local -Z axis
    - Default sensor: 36 x 24 mm (full-frame 35mm stills)
"""

from .errors import (
    FspyError,
    FormatError,
    UnsupportedVersionError,
    MissingFieldError,
    TruncatedInputError,
    NonInvertibleTransformError,
)
from .project import CameraParameters, Project, decode_project, read_project, parse_state
from .geometry import (
    CameraPose,
    transpose4x4,
    invert4x4,
    derive_pose,
    absolute_focal_length,
    scale_dimensions,
)
from .config import ImportSettings, SensorSize, OutputPaths
from .store import ProjectStore

__version__ = "1.0.0"
__all__ = [
    "FspyError",
    "FormatError",
    "UnsupportedVersionError",
    "MissingFieldError",
    "TruncatedInputError",
    "NonInvertibleTransformError",
    "CameraParameters",
    "Project",
    "decode_project",
    "read_project",
    "parse_state",
    "CameraPose",
    "transpose4x4",
    "invert4x4",
    "derive_pose",
    "absolute_focal_length",
    "scale_dimensions",
    "ImportSettings",
    "SensorSize",
    "OutputPaths",
    "ProjectStore",
]

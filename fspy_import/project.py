"""
fSpy project file reader.

Decodes the binary project container written by fSpy into an immutable
Project value.

Binary Layout (little-endian):
    offset  size        field
    0       4           magic, uint32 == 2037412710 (b"fspy")
    4       4           version, int32 == 1
    8       4           state string size, int32
    12      4           image buffer size, int32 (> 0)
    16      state size  UTF-8 JSON calibration state
    16+S    image size  raw reference image bytes (PNG or JPEG)

JSON Fields Consumed:
    cameraParameters.principalPoint.{x,y}
    cameraParameters.horizontalFieldOfView
    cameraParameters.cameraTransform.rows   (4 x 4 floats)
    cameraParameters.imageWidth / imageHeight
    cameraParameters.relativeFocalLength
    calibrationSettingsBase.referenceDistanceUnit

Any other JSON field is ignored.
"""

import io
import json
import numpy as np
from pathlib import Path
from typing import Any, BinaryIO, Dict, Tuple, Union
from dataclasses import dataclass
import logging

from .errors import (
    FormatError,
    MissingFieldError,
    TruncatedInputError,
    UnsupportedVersionError,
)
from . import geometry

logger = logging.getLogger(__name__)

FSPY_MAGIC = 2037412710
SUPPORTED_VERSION = 1

FLOAT32_MAX = float(np.finfo(np.float32).max)
INT32_MAX = int(np.iinfo(np.int32).max)

HEADER_DTYPE = np.dtype([
    ('magic', '<u4'),
    ('version', '<i4'),
    ('state_size', '<i4'),
    ('image_size', '<i4'),
])
HEADER_SIZE = HEADER_DTYPE.itemsize  # 16 bytes

_IMAGE_SIGNATURES = (
    (b'\x89PNG\r\n\x1a\n', '.png'),
    (b'\xff\xd8\xff', '.jpg'),
)


def _float32(value: float, name: str = "value") -> float:
    """Round a value to float32 precision, returned as a Python float."""
    if not abs(value) <= FLOAT32_MAX:
        raise FormatError(f"{name} is out of single-precision range: {value!r}")
    return float(np.float32(value))


@dataclass(frozen=True)
class CameraParameters:
    """
    Calibrated camera parameters stored in an fSpy project.

    Attributes:
        principal_point: (x, y) principal point in fSpy's image-plane coordinates
        horizontal_field_of_view: Horizontal FOV, as stored by fSpy
        camera_transform: 4x4 camera transform, 4 rows of 4 floats
        image_width: Reference image width in pixels
        image_height: Reference image height in pixels
        relative_focal_length: Focal length relative to half the sensor extent
    """
    principal_point: Tuple[float, float]
    horizontal_field_of_view: float
    camera_transform: Tuple[Tuple[float, ...], ...]
    image_width: int
    image_height: int
    relative_focal_length: float

    def transform_matrix(self) -> np.ndarray:
        """Return the camera transform as a float32 4x4 array."""
        return np.array(self.camera_transform, dtype=np.float32)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using fSpy's own JSON field names."""
        return {
            'principalPoint': {
                'x': self.principal_point[0],
                'y': self.principal_point[1],
            },
            'horizontalFieldOfView': self.horizontal_field_of_view,
            'cameraTransform': {
                'rows': [list(row) for row in self.camera_transform],
            },
            'imageWidth': self.image_width,
            'imageHeight': self.image_height,
            'relativeFocalLength': self.relative_focal_length,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CameraParameters":
        """
        Build camera parameters from fSpy's `cameraParameters` JSON object.

        Args:
            data: The `cameraParameters` mapping

        Returns:
            CameraParameters with float32-rounded single-precision fields

        Raises:
            MissingFieldError: if a required key is absent
            FormatError: if a value has the wrong type or shape
        """
        principal_point = _require_mapping(data, 'principalPoint', 'cameraParameters')
        transform = _require_mapping(data, 'cameraTransform', 'cameraParameters')

        return cls(
            principal_point=(
                _float32(
                    _require_number(principal_point, 'x', 'cameraParameters.principalPoint'),
                    'cameraParameters.principalPoint.x',
                ),
                _float32(
                    _require_number(principal_point, 'y', 'cameraParameters.principalPoint'),
                    'cameraParameters.principalPoint.y',
                ),
            ),
            horizontal_field_of_view=_float32(
                _require_number(data, 'horizontalFieldOfView', 'cameraParameters'),
                'cameraParameters.horizontalFieldOfView',
            ),
            camera_transform=_parse_transform_rows(
                _require(transform, 'rows', 'cameraParameters.cameraTransform')
            ),
            image_width=_require_positive_int(data, 'imageWidth', 'cameraParameters'),
            image_height=_require_positive_int(data, 'imageHeight', 'cameraParameters'),
            relative_focal_length=float(
                _require_number(data, 'relativeFocalLength', 'cameraParameters')
            ),
        )


@dataclass(frozen=True)
class Project:
    """
    A decoded fSpy project.

    The raw image is kept as-is; use `image_suffix` to find out what it is.
    """
    version: int
    camera_parameters: CameraParameters
    reference_distance_unit: str
    image_bytes: bytes
    file_name: str = ""

    @property
    def image_suffix(self) -> str:
        """File suffix matching the embedded image data ('.bin' if unknown)."""
        for signature, suffix in _IMAGE_SIGNATURES:
            if self.image_bytes.startswith(signature):
                return suffix
        return '.bin'

    def camera_pose(self) -> geometry.CameraPose:
        """Derive the camera pose from the stored transform."""
        return geometry.derive_pose(self.camera_parameters.camera_transform)

    def absolute_focal_length(
        self,
        sensor_width: float = geometry.DEFAULT_SENSOR_WIDTH,
        sensor_height: float = geometry.DEFAULT_SENSOR_HEIGHT,
    ) -> float:
        """Absolute focal length for the given physical sensor size."""
        return geometry.absolute_focal_length(
            self.camera_parameters, sensor_width, sensor_height
        )

    def save_image_data(self, file_path: Union[str, Path]) -> str:
        """
        Write the embedded reference image to disk.

        Args:
            file_path: Destination file

        Returns:
            The path written, as a string
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'wb') as f:
            f.write(self.image_bytes)

        logger.info(f"Saved {len(self.image_bytes)} bytes of image data to {path}")
        return str(path)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize everything except the raw image bytes."""
        return {
            'version': self.version,
            'fileName': self.file_name,
            'referenceDistanceUnit': self.reference_distance_unit,
            'cameraParameters': self.camera_parameters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        """
        Rebuild a project from `to_dict()` output.

        The image is not part of the serialized form, so `image_bytes` is empty.
        """
        version = _require(data, 'version', '')
        if version != SUPPORTED_VERSION:
            raise UnsupportedVersionError(version)

        return cls(
            version=version,
            camera_parameters=CameraParameters.from_dict(
                _require_mapping(data, 'cameraParameters', '')
            ),
            reference_distance_unit=_require_string(data, 'referenceDistanceUnit', ''),
            image_bytes=b'',
            file_name=str(data.get('fileName', '')),
        )


def _require(data: Dict[str, Any], key: str, parent: str) -> Any:
    if key not in data or data[key] is None:
        raise MissingFieldError(f"{parent}.{key}" if parent else key)
    return data[key]


def _require_mapping(data: Dict[str, Any], key: str, parent: str) -> Dict[str, Any]:
    value = _require(data, key, parent)
    if not isinstance(value, dict):
        raise FormatError(f"Expected an object for {parent}.{key}")
    return value


def _require_number(data: Dict[str, Any], key: str, parent: str) -> float:
    value = _require(data, key, parent)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormatError(f"Expected a number for {parent}.{key}, got {value!r}")
    try:
        as_float = float(value)
    except OverflowError as e:
        raise FormatError(f"{parent}.{key} is too large: {value!r}") from e
    if not np.isfinite(as_float):
        raise FormatError(f"{parent}.{key} must be finite, got {value!r}")
    return value


def _require_positive_int(data: Dict[str, Any], key: str, parent: str) -> int:
    value = _require_number(data, key, parent)
    if isinstance(value, float):
        if not value.is_integer():
            raise FormatError(f"Expected an integer for {parent}.{key}, got {value!r}")
        value = int(value)
    if value <= 0:
        raise FormatError(f"{parent}.{key} must be positive, got {value}")
    if value > INT32_MAX:
        raise FormatError(f"{parent}.{key} does not fit in 32 bits, got {value}")
    return value


def _require_string(data: Dict[str, Any], key: str, parent: str) -> str:
    value = _require(data, key, parent)
    if not isinstance(value, str):
        raise FormatError(f"Expected a string for {parent}.{key}, got {value!r}")
    return value


def _parse_transform_rows(rows: Any) -> Tuple[Tuple[float, ...], ...]:
    """Validate fSpy's `cameraTransform.rows` as exactly 4 rows of 4 numbers."""
    if not isinstance(rows, list) or len(rows) != 4:
        raise FormatError("malformed camera transform")

    parsed = []
    for row in rows:
        if not isinstance(row, list) or len(row) != 4:
            raise FormatError("malformed camera transform")
        for value in row:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise FormatError("malformed camera transform")
        parsed.append(tuple(_float32(value, 'cameraParameters.cameraTransform') for value in row))

    return tuple(parsed)


def parse_state(state: Any) -> Tuple[CameraParameters, str]:
    """
    Extract the consumed fields from a parsed fSpy JSON state.

    Args:
        state: Parsed JSON document

    Returns:
        Tuple of (camera parameters, reference distance unit)
    """
    if not isinstance(state, dict):
        raise FormatError("fSpy project state is not a JSON object")

    camera_data = state.get('cameraParameters')
    if camera_data is None:
        # fSpy writes null here when the calibration did not converge
        raise MissingFieldError("cameraParameters")
    if not isinstance(camera_data, dict):
        raise FormatError("Expected an object for cameraParameters")

    camera_parameters = CameraParameters.from_dict(camera_data)

    settings = _require_mapping(state, 'calibrationSettingsBase', '')
    unit = _require_string(settings, 'referenceDistanceUnit', 'calibrationSettingsBase')

    return camera_parameters, unit


def _read_exact(stream: BinaryIO, size: int, region: str) -> bytes:
    # check the declared size against what is left before allocating it
    position = stream.tell()
    remaining = stream.seek(0, io.SEEK_END) - position
    stream.seek(position)
    if remaining < size:
        raise TruncatedInputError(region, size, max(remaining, 0))

    data = stream.read(size)
    if len(data) < size:
        raise TruncatedInputError(region, size, len(data))
    return data


def decode_project(stream: BinaryIO, file_name: str = "") -> Project:
    """
    Decode an fSpy project from a seekable binary stream.

    The header is fully validated (magic, version, image size) before any
    payload is read. The stream is positioned explicitly at the end of the
    header before the JSON state is read.

    Args:
        stream: Seekable binary stream positioned anywhere
        file_name: Name recorded on the resulting project

    Returns:
        Decoded Project

    Raises:
        FormatError: wrong magic, bad sizes, invalid UTF-8/JSON, bad transform
        UnsupportedVersionError: version other than 1
        MissingFieldError: required JSON key absent
        TruncatedInputError: stream ended inside a declared region
    """
    stream.seek(0)
    header_bytes = stream.read(HEADER_SIZE)

    if len(header_bytes) >= 4:
        magic = int(np.frombuffer(header_bytes[:4], dtype='<u4')[0])
        if magic != FSPY_MAGIC:
            raise FormatError("not an fSpy project")

    if len(header_bytes) < HEADER_SIZE:
        raise TruncatedInputError("header", HEADER_SIZE, len(header_bytes))

    header = np.frombuffer(header_bytes, dtype=HEADER_DTYPE)[0]
    version = int(header['version'])
    state_size = int(header['state_size'])
    image_size = int(header['image_size'])

    logger.debug(
        f"fSpy header: version={version}, state_size={state_size}, image_size={image_size}"
    )

    if version != SUPPORTED_VERSION:
        raise UnsupportedVersionError(version)

    if image_size <= 0:
        raise FormatError("no image data")

    if state_size < 0:
        raise FormatError(f"Invalid state string size {state_size}")

    stream.seek(HEADER_SIZE)
    state_bytes = _read_exact(stream, state_size, "JSON state")

    try:
        state_text = state_bytes.decode('utf-8')
    except UnicodeDecodeError as e:
        raise FormatError(f"JSON state is not valid UTF-8: {e}") from e

    try:
        state = json.loads(state_text)
    except json.JSONDecodeError as e:
        raise FormatError(f"JSON state could not be parsed: {e}") from e

    camera_parameters, unit = parse_state(state)

    image_bytes = _read_exact(stream, image_size, "image data")

    project = Project(
        version=version,
        camera_parameters=camera_parameters,
        reference_distance_unit=unit,
        image_bytes=image_bytes,
        file_name=file_name,
    )

    logger.info(
        f"Decoded fSpy project '{file_name}': "
        f"{camera_parameters.image_width}x{camera_parameters.image_height} image, "
        f"{len(image_bytes)} image bytes, unit={unit}"
    )
    return project


def read_project(filepath: Union[str, Path]) -> Project:
    """
    Read an fSpy project from disk.

    Args:
        filepath: Path to a .fspy file

    Returns:
        Decoded Project, with `file_name` set to the path's base name
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"fSpy project not found: {filepath}")

    with open(path, 'rb') as f:
        return decode_project(f, file_name=path.name)

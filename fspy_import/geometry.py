"""
Camera geometry derived from a decoded fSpy project.

fSpy stores the calibrated camera as a 4x4 transform, serialized as 4 rows of
4 floats. The pose math below works on the transposed (column-oriented) form
of that matrix:

    W    = transpose(rows)
    Winv = inverse(W)

    location = W[3, :3]          (translation row of W)
    right    = Winv[:3, 0]
    up       = Winv[:3, 1]
    forward  = -Winv[:3, 2]      (fSpy cameras look down their local -Z)

All arithmetic is done in float32 to stay consistent with the stored values.
Basis vectors are NOT normalized; they carry whatever scale the transform has.

Focal length:
    fSpy reports a relative focal length (focal / half sensor extent). The
    absolute focal length uses the sensor's longer side when it is wider than
    tall, its height otherwise.
"""

import numpy as np
from typing import Sequence, Tuple, TYPE_CHECKING
from dataclasses import dataclass
import logging

from .errors import FormatError, NonInvertibleTransformError

if TYPE_CHECKING:
    from .project import CameraParameters

logger = logging.getLogger(__name__)

# Full-frame 35mm stills sensor, in millimetres
DEFAULT_SENSOR_WIDTH = 36.0
DEFAULT_SENSOR_HEIGHT = 24.0

# Relative singularity threshold for float32 inversion
SINGULARITY_EPS = float(np.finfo(np.float32).eps)


@dataclass(frozen=True, eq=False)
class CameraPose:
    """
    Camera location and orientation basis in world coordinates.

    The vectors are stored as read-only float32 arrays. Poses compare equal
    when all four vectors match exactly.

    Attributes:
        right: Camera local +X axis in world coordinates
        up: Camera local +Y axis in world coordinates
        forward: Viewing direction (camera local -Z) in world coordinates
        location: Camera position in world coordinates
    """
    right: np.ndarray
    up: np.ndarray
    forward: np.ndarray
    location: np.ndarray

    def __post_init__(self):
        for name in ('right', 'up', 'forward', 'location'):
            arr = np.array(getattr(self, name), dtype=np.float32)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def _vectors(self) -> Tuple[np.ndarray, ...]:
        return (self.right, self.up, self.forward, self.location)

    def __eq__(self, other):
        if not isinstance(other, CameraPose):
            return NotImplemented
        return all(
            np.array_equal(a, b) for a, b in zip(self._vectors(), other._vectors())
        )

    def __hash__(self):
        return hash(tuple(v.tobytes() for v in self._vectors()))

    def as_dict(self) -> dict:
        """Return the pose as plain lists, suitable for JSON output."""
        return {
            'right': self.right.tolist(),
            'up': self.up.tolist(),
            'forward': self.forward.tolist(),
            'location': self.location.tolist(),
        }


def _as_matrix4(m) -> np.ndarray:
    """Coerce a 4x4 array-like to a float32 array, rejecting other shapes."""
    try:
        arr = np.asarray(m, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise FormatError("malformed camera transform") from e

    if arr.shape != (4, 4):
        raise FormatError("malformed camera transform")

    return arr


def transpose4x4(m: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Transpose a row-major 4x4 matrix into its column-oriented form.

    Args:
        m: 4 rows of 4 values

    Returns:
        float32 array W with W[i, j] == m[j][i]
    """
    return np.ascontiguousarray(_as_matrix4(m).T)


def invert4x4(w: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 matrix in single precision.

    The matrix is treated as singular when its determinant is negligible
    relative to the product of its row norms (Hadamard's bound), so a
    scaled-down but well-conditioned matrix is still accepted.

    Args:
        w: 4x4 matrix

    Returns:
        float32 inverse of w

    Raises:
        NonInvertibleTransformError: if w is singular to float32 precision
    """
    w = _as_matrix4(w)

    if not np.all(np.isfinite(w)):
        raise NonInvertibleTransformError()

    det = float(np.linalg.det(w))
    scale = float(np.prod(np.linalg.norm(w, axis=1)))

    if abs(det) <= SINGULARITY_EPS * scale:
        logger.debug(f"Rejecting singular transform: det={det}, scale={scale}")
        raise NonInvertibleTransformError(det)

    try:
        inv = np.linalg.inv(w)
    except np.linalg.LinAlgError as e:
        raise NonInvertibleTransformError(det) from e

    return inv.astype(np.float32)


def derive_pose(m: Sequence[Sequence[float]]) -> CameraPose:
    """
    Derive the camera pose from an fSpy camera transform.

    Args:
        m: Camera transform as stored in the project (4 rows of 4 floats)

    Returns:
        CameraPose with un-normalized right/up/forward basis and location

    Raises:
        FormatError: if m is not 4x4
        NonInvertibleTransformError: if the transform is singular
    """
    w = transpose4x4(m)
    w_inv = invert4x4(w)

    pose = CameraPose(
        right=w_inv[:3, 0].copy(),
        up=w_inv[:3, 1].copy(),
        forward=-w_inv[:3, 2],
        location=w[3, :3].copy(),
    )

    logger.debug(f"Camera location: {pose.location}, forward: {pose.forward}")
    return pose


def absolute_focal_length(
    params: "CameraParameters",
    sensor_width: float = DEFAULT_SENSOR_WIDTH,
    sensor_height: float = DEFAULT_SENSOR_HEIGHT,
) -> float:
    """
    Convert the project's relative focal length to an absolute one.

    Args:
        params: Decoded camera parameters
        sensor_width: Physical sensor width (mm for a 35mm-equivalent result)
        sensor_height: Physical sensor height, same unit as width

    Returns:
        Absolute focal length in the sensor's unit
    """
    aspect_ratio = sensor_width / sensor_height if sensor_height > 0 else 1.0
    relative = params.relative_focal_length

    if aspect_ratio > 1:
        # wide sensor
        return 0.5 * sensor_width * relative
    # tall or square sensor
    return 0.5 * sensor_height * relative


def scale_dimensions(width: int, height: int, max_size: int) -> Tuple[int, int]:
    """
    Scale an image size so its longer side equals max_size.

    The shorter side keeps the aspect ratio and is truncated to an int.
    A square image is scaled on its height.
    """
    if width <= 0 or height <= 0 or max_size <= 0:
        raise ValueError(
            f"Dimensions must be positive, got {width}x{height} (max {max_size})"
        )

    aspect_ratio = width / height

    if width > height:
        new_width = max_size
        new_height = int(new_width / aspect_ratio)
    else:
        new_height = max_size
        new_width = int(new_height * aspect_ratio)

    return new_width, new_height

"""
Shared fixtures: synthesized fSpy project files.
"""

import json
import struct

import pytest

FSPY_MAGIC = 2037412710

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + bytes(range(64))


def make_state(**camera_overrides):
    """Build a minimal fSpy JSON state, as written by fSpy 1.x."""
    camera = {
        'principalPoint': {'x': 0.0, 'y': 0.0},
        'viewTransform': {'rows': [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]]},
        'cameraTransform': {
            'rows': [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]],
        },
        'horizontalFieldOfView': 1.2,
        'verticalFieldOfView': 0.85,
        'vanishingPoints': [{'x': 0.1, 'y': 0.2}, {'x': -3.0, 'y': 0.1}],
        'vanishingPointAxes': ['xNegative', 'zNegative', 'yPositive'],
        'relativeFocalLength': 1.5,
        'imageWidth': 4000,
        'imageHeight': 3000,
    }
    camera.update(camera_overrides)
    return {
        'cameraParameters': camera,
        'calibrationSettingsBase': {
            'referenceDistanceUnit': 'Meters',
            'referenceDistance': 2.5,
            'cameraData': {'presetId': None},
        },
        'calibrationSettings1VP': {'principalPointMode': 'Default'},
        'imageParameters': {'absoluteFocalLength': 0},
    }


def make_fspy_bytes(
    state=None,
    image=PNG_BYTES,
    magic=FSPY_MAGIC,
    version=1,
    state_size=None,
    image_size=None,
    state_bytes=None,
):
    """Pack a project file; sizes default to the actual payload lengths."""
    if state_bytes is None:
        state_bytes = json.dumps(make_state() if state is None else state).encode('utf-8')
    if state_size is None:
        state_size = len(state_bytes)
    if image_size is None:
        image_size = len(image)
    header = struct.pack('<Iiii', magic, version, state_size, image_size)
    return header + state_bytes + image


@pytest.fixture
def fspy_bytes():
    """Bytes of a valid project with an identity camera transform."""
    return make_fspy_bytes()


@pytest.fixture
def fspy_file(tmp_path, fspy_bytes):
    """A valid project written to disk."""
    path = tmp_path / 'room.fspy'
    path.write_bytes(fspy_bytes)
    return path

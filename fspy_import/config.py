"""
Configuration module for fSpy project import.

Handles loading and validation of import settings from YAML files.
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import logging

from .geometry import DEFAULT_SENSOR_WIDTH, DEFAULT_SENSOR_HEIGHT

logger = logging.getLogger(__name__)


@dataclass
class SensorSize:
    """Physical camera sensor size used to compute absolute focal length."""
    width: float = DEFAULT_SENSOR_WIDTH  # mm
    height: float = DEFAULT_SENSOR_HEIGHT  # mm


@dataclass
class OutputPaths:
    """Where extracted images and the project store are written."""
    image_dir: Optional[str] = None  # Directory for extracted reference images
    store: Optional[str] = None  # JSON project store file
    store_key: str = 'fspy'  # Key the imported projects are listed under


@dataclass
class ImportSettings:
    """
    Main configuration class for fSpy project import.

    Attributes:
        sensor: Physical sensor size for absolute focal length
        max_view_size: Longer side, in pixels, of the scaled view size
        output: Output locations for images and the project store
    """
    sensor: SensorSize = field(default_factory=SensorSize)
    max_view_size: int = 1280
    output: OutputPaths = field(default_factory=OutputPaths)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ValueError for settings that cannot be used."""
        if self.sensor.width <= 0 or self.sensor.height <= 0:
            raise ValueError(
                f"Sensor size must be positive, got {self.sensor.width}x{self.sensor.height}"
            )
        if self.max_view_size <= 0:
            raise ValueError(f"max_view_size must be positive, got {self.max_view_size}")

    @classmethod
    def from_yaml(cls, config_path: str) -> "ImportSettings":
        """
        Load import settings from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            ImportSettings with loaded parameters

        Example YAML structure:
            sensor:
              width: 36.0
              height: 24.0
            view:
              max_size: 1280
            output:
              image_dir: images
              store: fspy_store.json
              store_key: fspy
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loading configuration from {config_path}")

        sensor_data = data.get('sensor') or {}
        sensor = SensorSize(
            width=float(sensor_data.get('width', DEFAULT_SENSOR_WIDTH)),
            height=float(sensor_data.get('height', DEFAULT_SENSOR_HEIGHT)),
        )

        view_data = data.get('view') or {}

        # Resolve paths relative to config file location
        config_dir = path.parent
        output_data = data.get('output') or {}

        image_dir = output_data.get('image_dir')
        if image_dir:
            image_dir = str(config_dir / image_dir)

        store = output_data.get('store')
        if store:
            store = str(config_dir / store)

        output = OutputPaths(
            image_dir=image_dir,
            store=store,
            store_key=output_data.get('store_key', 'fspy'),
        )

        return cls(
            sensor=sensor,
            max_view_size=int(view_data.get('max_size', 1280)),
            output=output,
        )

    def to_yaml(self, config_path: str) -> None:
        """Save import settings to a YAML file."""
        data = {
            'sensor': {
                'width': self.sensor.width,
                'height': self.sensor.height,
            },
            'view': {
                'max_size': self.max_view_size,
            },
            'output': {
                'image_dir': self.output.image_dir,
                'store': self.output.store,
                'store_key': self.output.store_key,
            },
        }

        with open(config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")

"""
Command-line interface for fSpy project import.

Usage:
    fspy-import project.fspy [--config CONFIG] [--save-image [PATH]] [--store PATH]
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import ImportSettings
from .errors import FspyError
from .geometry import scale_dimensions
from .project import read_project
from .store import ProjectStore


def setup_logging(verbose: bool = False, stream=None) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(stream or sys.stdout)]
    )


def _format_vector(v) -> str:
    return "(" + ", ".join(f"{float(x):.4f}" for x in v) + ")"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Decode an fSpy project and report its camera pose and focal length',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Print camera summary for a 35mm full-frame sensor
    fspy-import room.fspy

    # Use a different sensor and extract the reference image
    fspy-import room.fspy --sensor-width 23.5 --sensor-height 15.6 --save-image

    # Machine-readable output, recorded in a project store
    fspy-import room.fspy --json --store projects.json
'''
    )

    parser.add_argument(
        'project',
        type=str,
        help='Path to the .fspy project file'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--sensor-width',
        type=float,
        default=None,
        help='Sensor width in mm (default: 36, or the config value)'
    )

    parser.add_argument(
        '--sensor-height',
        type=float,
        default=None,
        help='Sensor height in mm (default: 24, or the config value)'
    )

    parser.add_argument(
        '--save-image',
        nargs='?',
        const='',
        default=None,
        metavar='PATH',
        help='Write the embedded reference image (default name: project name + image suffix)'
    )

    parser.add_argument(
        '--store',
        type=str,
        default=None,
        help='JSON project store to record the decoded project in'
    )

    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the decoded project as JSON instead of a summary'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)

    # keep stdout clean for JSON output
    setup_logging(args.verbose, sys.stderr if args.json else None)
    logger = logging.getLogger(__name__)

    try:
        if args.config:
            settings = ImportSettings.from_yaml(args.config)
        else:
            settings = ImportSettings()

        if args.sensor_width is not None:
            settings.sensor.width = args.sensor_width
        if args.sensor_height is not None:
            settings.sensor.height = args.sensor_height
        settings.validate()

        project = read_project(args.project)
        params = project.camera_parameters
        pose = project.camera_pose()
        focal_length = project.absolute_focal_length(
            settings.sensor.width, settings.sensor.height
        )
        view_width, view_height = scale_dimensions(
            params.image_width, params.image_height, settings.max_view_size
        )

        image_path = None
        if args.save_image is not None:
            if args.save_image:
                image_path = Path(args.save_image)
            else:
                project_path = Path(args.project)
                image_dir = Path(settings.output.image_dir) if settings.output.image_dir \
                    else project_path.parent
                image_path = image_dir / (project_path.stem + project.image_suffix)
            project.save_image_data(image_path)

        store_path = args.store or settings.output.store
        if store_path:
            ProjectStore(store_path).add_project(settings.output.store_key, project)

        if args.json:
            output = project.to_dict()
            output['pose'] = pose.as_dict()
            output['absoluteFocalLength'] = focal_length
            output['sensor'] = {'width': settings.sensor.width, 'height': settings.sensor.height}
            output['viewSize'] = [view_width, view_height]
            output['imageBytes'] = len(project.image_bytes)
            if image_path is not None:
                output['imagePath'] = str(image_path)
            print(json.dumps(output, indent=2))
            return 0

        print("\n" + "=" * 60)
        print("FSPY PROJECT")
        print("=" * 60)
        print(f"File:                   {project.file_name}")
        print(f"Version:                {project.version}")
        print(f"Image:                  {params.image_width} x {params.image_height} "
              f"({len(project.image_bytes)} bytes, {project.image_suffix})")
        print(f"Reference unit:         {project.reference_distance_unit}")
        print(f"Principal point:        {_format_vector(params.principal_point)}")
        print(f"Horizontal FOV:         {params.horizontal_field_of_view:.4f}")
        print(f"\nFocal Length:")
        print(f"  Relative:             {params.relative_focal_length:.4f}")
        print(f"  Absolute:             {focal_length:.3f} "
              f"(sensor {settings.sensor.width:g} x {settings.sensor.height:g})")
        print(f"\nCamera Pose:")
        print(f"  Location:             {_format_vector(pose.location)}")
        print(f"  Right:                {_format_vector(pose.right)}")
        print(f"  Up:                   {_format_vector(pose.up)}")
        print(f"  Forward:              {_format_vector(pose.forward)}")
        print(f"\nView size:              {view_width} x {view_height}")
        if image_path is not None:
            print(f"Image written to:       {image_path}")
        print("=" * 60)
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except FspyError as e:
        logger.error(f"Error importing fSpy project: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())

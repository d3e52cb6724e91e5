"""
JSON-backed key/value store for imported fSpy projects.

Each key maps to a list of serialized projects (see `Project.to_dict`).
Image bytes are not stored; keep the extracted image file next to the store
if it is needed later.

File Format:
    {
      "fspy": [
        {"version": 1, "fileName": "room.fspy", "referenceDistanceUnit": "Meters",
         "cameraParameters": {...}},
        ...
      ]
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union
import logging

from .errors import FspyError
from .project import Project

logger = logging.getLogger(__name__)


class ProjectStore:
    """
    Persist lists of decoded projects in a JSON file.

    A missing file reads as empty. A file that is not valid JSON is logged and
    also read as empty; the next write replaces it. The same holds for a key
    whose stored entries cannot be rebuilt into projects.
    """

    def __init__(self, filepath: Union[str, Path]):
        self.filepath = Path(filepath)

    def _load(self) -> Dict[str, Any]:
        if not self.filepath.exists():
            return {}

        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Error deserializing project store {self.filepath}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Project store {self.filepath} is not a JSON object, ignoring it")
            return {}

        return data

    def _save(self, data: Dict[str, Any]) -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(self.filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    def get_list(self, key: str) -> List[Project]:
        """
        Load the projects stored under key.

        Args:
            key: Store key

        Returns:
            Projects in stored order, empty if the key is absent
        """
        entries = self._load().get(key) or []

        try:
            return [Project.from_dict(entry) for entry in entries]
        except (FspyError, TypeError) as e:
            logger.error(f"Error deserializing '{key}' from project store {self.filepath}: {e}")
            return []

    def set_list(self, key: str, projects: List[Project]) -> None:
        """Replace the list stored under key."""
        data = self._load()
        data[key] = [project.to_dict() for project in projects]
        self._save(data)
        logger.debug(f"Stored {len(projects)} projects under '{key}' in {self.filepath}")

    def add_project(self, key: str, project: Project) -> None:
        """
        Append a project under key, replacing any entry with the same file name.
        """
        projects = [p for p in self.get_list(key) if p.file_name != project.file_name]
        projects.append(project)
        self.set_list(key, projects)
        logger.info(f"Recorded '{project.file_name}' in {self.filepath} under '{key}'")

    def remove(self, key: str) -> bool:
        """
        Delete key from the store.

        Returns:
            True if the key existed
        """
        data = self._load()
        if key not in data:
            return False

        del data[key]
        self._save(data)
        return True

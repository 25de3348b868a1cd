"""File-backed token document storage (YAML or JSON)."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .token_engine.document import PersistencePort

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def load_token_file(file_path: Path) -> Dict[str, Any]:
    """Load a YAML or JSON token file safely.

    Raises:
        ValueError: If the file cannot be read or parsed
    """
    file_path = Path(file_path)
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            if file_path.suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {file_path}: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e}")
    except OSError as e:
        raise ValueError(f"Error reading {file_path}: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Token file {file_path} must contain a mapping")
    return data


def save_token_file(file_path: Path, document: Dict[str, Any]) -> None:
    """Write a token document as YAML or JSON, chosen by suffix."""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, 'w', encoding='utf-8') as f:
        if file_path.suffix.lower() in YAML_SUFFIXES:
            yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(document, f, indent=2)
    logger.debug(f"Wrote token document to {file_path}")


class FilePersistence(PersistencePort):
    """Persistence port backed by a single token file."""

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.file_path.exists():
            return None
        return load_token_file(self.file_path)

    def save(self, document: Dict[str, Any]) -> None:
        save_token_file(self.file_path, document)

"""
Custom matrix input.

A custom matrix is a JSON (or YAML) array of {env, platform} objects:
    [{"env": "qa", "platform": "web"}, {"env": "prod", "platform": "mobile"}]

Every item needs non-empty string values for both keys; one bad item rejects
the whole input before anything is started.
"""

import json
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

import yaml

from ..errors import ValidationError
from ..models import MatrixCell

CUSTOM_MATRIX_VAR = "TEST_CONFIGS_JSON"


def validate_custom_matrix(items: Any, source: str = CUSTOM_MATRIX_VAR) -> List[MatrixCell]:
    """
    Convert a decoded array into matrix cells, trimming both fields.

    Raises:
        ValidationError: If `items` is not a list or any item is malformed
    """
    if not isinstance(items, list):
        raise ValidationError(
            f"Invalid {source}: must be a JSON array of {{ env, platform }} objects"
        )

    cells = []
    for i, item in enumerate(items):
        env = item.get('env') if isinstance(item, dict) else None
        platform = item.get('platform') if isinstance(item, dict) else None

        if not isinstance(env, str) or not env.strip():
            raise ValidationError(f"Invalid {source} item #{i}: missing valid 'env'")
        if not isinstance(platform, str) or not platform.strip():
            raise ValidationError(f"Invalid {source} item #{i}: missing valid 'platform'")

        cells.append(MatrixCell(environment=env.strip(), platform=platform.strip()))

    return cells


def parse_custom_matrix(raw: Optional[str], source: str = CUSTOM_MATRIX_VAR) -> Optional[List[MatrixCell]]:
    """
    Parse a JSON-encoded custom matrix.

    Returns:
        None if `raw` is empty or decodes to an empty array, else the cells

    Raises:
        ValidationError: If `raw` is not valid JSON or not a valid matrix
    """
    raw = (raw or '').strip()
    if not raw:
        return None

    try:
        items = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError(f"Invalid {source}: must be valid JSON")

    return validate_custom_matrix(items, source) or None


def custom_matrix_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[List[MatrixCell]]:
    """Read TEST_CONFIGS_JSON from the environment (None if unset)."""
    environ = os.environ if environ is None else environ
    return parse_custom_matrix(environ.get(CUSTOM_MATRIX_VAR))


def load_custom_matrix(path: Union[str, Path]) -> Optional[List[MatrixCell]]:
    """
    Load a custom matrix from a YAML or JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the file is not a valid matrix
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Matrix file not found: {path}")

    try:
        with open(path, 'r') as f:
            items = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ValidationError(f"Invalid matrix file {path}: {err}")

    return validate_custom_matrix(items, source=str(path)) or None

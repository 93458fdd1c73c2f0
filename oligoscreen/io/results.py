"""
JSON persistence for screening results.

Results are written with pydantic's JSON serializer. Differential fields are
optional, so files from runs without an exclusivity set load unchanged.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from oligoscreen.models.data_classes import ScreenResult

logger = logging.getLogger(__name__)

_UNSAFE_CHARACTERS = re.compile(r"[^\w\-.]")


class ResultsFileError(RuntimeError):
    """Raised when a results file cannot be written or parsed."""
    pass


def save_results(result: ScreenResult, path: Union[str, Path]) -> Path:
    """Write a result as pretty-printed JSON."""
    path = Path(path)
    try:
        path.write_text(result.model_dump_json(indent=2))
    except OSError as e:
        raise ResultsFileError(f"Failed to write {path}: {e}") from e
    logger.info(f"Results written to {path}")
    return path


def load_results(path: Union[str, Path]) -> ScreenResult:
    """Read a result written by ``save_results``."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ResultsFileError(f"Failed to read {path}: {e}") from e
    try:
        return ScreenResult.model_validate_json(text)
    except ValidationError as e:
        raise ResultsFileError(f"{path} is not a valid results file: {e}") from e


def sanitize_filename(name: str) -> str:
    """Replace anything but letters, digits, '-', '_' and '.' with '_'."""
    return _UNSAFE_CHARACTERS.sub("_", name)


def auto_save(
    result: ScreenResult,
    folder: Union[str, Path],
    job_id: int,
    name: str = "",
) -> Path:
    """
    Save a finished run into ``folder`` as ``{name}_{job_id}.json``.

    ``name`` defaults to the result's template name and is sanitized for use
    as a file name.
    """
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)
    file_name = f"{sanitize_filename(name or result.template_name)}_{job_id}.json"
    return save_results(result, folder / file_name)

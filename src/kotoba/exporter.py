import json
import logging
import os
import time
from pathlib import Path
from typing import NamedTuple, Optional

from .errors import SerializeError
from .models import WordSource, source_to_dict

logger = logging.getLogger(__name__)


class ExportResult(NamedTuple):
    content: bytes
    filename: str


def encode_source(source: WordSource) -> bytes:
    """Pretty-printed JSON for a single word source."""
    try:
        payload = source_to_dict(source)
        return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializeError(f"Cannot serialize '{source.name}': {e}") from e


def export_filename(source: WordSource, timestamp: Optional[float] = None) -> str:
    if timestamp is None:
        timestamp = time.time()
    safe_name = source.name.replace(os.sep, "_").replace("/", "_")
    return f"{safe_name}_{int(timestamp)}.json"


def export_source(source: WordSource, timestamp: Optional[float] = None) -> ExportResult:
    result = ExportResult(encode_source(source), export_filename(source, timestamp))
    logger.info(f"Exported '{source.name}' as {result.filename}")
    return result


def write_export(source: WordSource, directory, timestamp: Optional[float] = None) -> Path:
    """Writes the export into ``directory`` and returns the file path."""
    result = export_source(source, timestamp)
    out = Path(directory) / result.filename
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(result.content)
    except OSError as e:
        logger.error(f"Failed to write export {out}: {e}")
        raise SerializeError(f"Export failed: {e}") from e
    return out

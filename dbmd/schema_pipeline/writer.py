"""Serialization of the stored metadata artifact to JSON or YAML."""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import Union

import yaml

from dbmd.models import StoredDatabaseMetadata
from dbmd.utils.logger import setup_logging

logger = setup_logging(__name__)

STDOUT_TARGET = "-"


class OutputFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


def render_metadata(metadata: StoredDatabaseMetadata, output_format: OutputFormat = OutputFormat.JSON) -> str:
    """Render the artifact using its camelCase wire names, in declaration order."""
    if output_format is OutputFormat.YAML:
        payload = metadata.model_dump(mode="json", by_alias=True)
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return metadata.model_dump_json(by_alias=True, indent=2) + "\n"


class MetadataWriter:
    """Persist one StoredDatabaseMetadata document.

    Files are written to a ``.tmp`` sibling first and renamed into place, so a
    failed run never leaves a partial artifact behind. ``-`` writes to stdout.
    """

    def __init__(self, output: Union[str, Path], output_format: OutputFormat = OutputFormat.JSON) -> None:
        self.output = output
        self.output_format = OutputFormat(output_format)

    def write(self, metadata: StoredDatabaseMetadata) -> Union[str, Path]:
        content = render_metadata(metadata, self.output_format)
        if str(self.output) == STDOUT_TARGET:
            sys.stdout.write(content)
            sys.stdout.flush()
            return STDOUT_TARGET

        path = Path(self.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as handle:
                handle.write(content)
            tmp_path.replace(path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.info(
            "Wrote metadata for %d relations and %d foreign keys to %s",
            len(metadata.relation_metadatas),
            len(metadata.foreign_keys),
            path,
        )
        return path


__all__ = ["STDOUT_TARGET", "OutputFormat", "render_metadata", "MetadataWriter"]

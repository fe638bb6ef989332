"""Binary metadata inspection for candidate modules."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from ..logging import get_logger
from ..models import ModuleMetadata
from .metadata import MetadataReader
from .pe import BadImageFormatError, PEImage

_LOGGER = get_logger("inspector")


def read_module_metadata(data: bytes) -> ModuleMetadata:
    """Decode ``data`` as a PE image and describe its CLI metadata.

    Raises BadImageFormatError when the container or its metadata is malformed.
    """
    image = PEImage(data)
    if not image.has_cli_header:
        return ModuleMetadata(has_metadata=False)

    reader = MetadataReader(image.metadata_block())
    if not reader.is_assembly:
        return ModuleMetadata(has_metadata=True, is_assembly=False)

    return ModuleMetadata(
        has_metadata=True,
        is_assembly=True,
        culture=reader.assembly_culture,
        name=reader.assembly_name,
    )


def inspect_module(path: Union[str, Path]) -> Optional[ModuleMetadata]:
    """Return metadata for the module at ``path``, or None when it is not inspectable."""
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        _LOGGER.warning("Unable to read %s: %s", path, exc)
        return None

    try:
        return read_module_metadata(data)
    except BadImageFormatError as exc:
        _LOGGER.debug("Skipping %s: %s", path, exc)
        return None


__all__ = ["BadImageFormatError", "inspect_module", "read_module_metadata"]

"""Minimal PE/COFF container reader.

Only the pieces needed to locate CLI metadata are decoded: the DOS stub
pointer, the COFF file header, the optional header's data directories and the
section table used to translate RVAs into file offsets.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import List, Optional, Tuple

_DOS_MAGIC = b"MZ"
_PE_SIGNATURE = b"PE\x00\x00"
_E_LFANEW_OFFSET = 0x3C
_COFF_HEADER_SIZE = 20
_SECTION_HEADER_SIZE = 40

_PE32_MAGIC = 0x10B
_PE32_PLUS_MAGIC = 0x20B

# Offsets of NumberOfRvaAndSizes inside the optional header; directories follow it.
_RVA_COUNT_OFFSET = {_PE32_MAGIC: 92, _PE32_PLUS_MAGIC: 108}

CLI_HEADER_DIRECTORY = 14
_CLI_HEADER_MIN_SIZE = 16


class BadImageFormatError(ValueError):
    """Raised when a file is not a well-formed PE image."""


def read_struct(fmt: str, data: bytes, offset: int) -> Tuple[int, ...]:
    """Unpack ``fmt`` at ``offset``, converting truncation into BadImageFormatError."""
    if offset < 0:
        raise BadImageFormatError(f"negative offset {offset}")
    try:
        return struct.unpack_from(fmt, data, offset)
    except struct.error as exc:
        raise BadImageFormatError(f"truncated image at offset {offset:#x}") from exc


@dataclass(frozen=True)
class SectionHeader:
    """Subset of an IMAGE_SECTION_HEADER."""

    name: str
    virtual_size: int
    virtual_address: int
    raw_size: int
    raw_pointer: int

    def contains(self, rva: int) -> bool:
        extent = max(self.virtual_size, self.raw_size)
        return self.virtual_address <= rva < self.virtual_address + extent


@dataclass(frozen=True)
class DataDirectory:
    rva: int
    size: int

    @property
    def present(self) -> bool:
        return self.rva != 0 and self.size != 0


class PEImage:
    """Parsed headers of a PE image held in memory."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self.is_pe32_plus = False
        self.sections: List[SectionHeader] = []
        self.directories: List[DataDirectory] = []
        self._parse_headers()

    @property
    def data(self) -> bytes:
        return self._data

    def _parse_headers(self) -> None:
        data = self._data
        if data[:2] != _DOS_MAGIC:
            raise BadImageFormatError("missing DOS header signature")
        (pe_offset,) = read_struct("<I", data, _E_LFANEW_OFFSET)
        if data[pe_offset : pe_offset + 4] != _PE_SIGNATURE:
            raise BadImageFormatError("missing PE signature")

        coff_offset = pe_offset + 4
        (
            _machine,
            section_count,
            _timestamp,
            _symbol_table,
            _symbol_count,
            optional_header_size,
            _characteristics,
        ) = read_struct("<HHIIIHH", data, coff_offset)

        optional_offset = coff_offset + _COFF_HEADER_SIZE
        if optional_header_size == 0:
            raise BadImageFormatError("image has no optional header")
        (magic,) = read_struct("<H", data, optional_offset)
        if magic not in _RVA_COUNT_OFFSET:
            raise BadImageFormatError(f"unknown optional header magic {magic:#x}")
        self.is_pe32_plus = magic == _PE32_PLUS_MAGIC

        count_offset = _RVA_COUNT_OFFSET[magic]
        (directory_count,) = read_struct("<I", data, optional_offset + count_offset)
        directories_offset = optional_offset + count_offset + 4
        max_directories = (optional_header_size - count_offset - 4) // 8
        if directory_count > max_directories:
            raise BadImageFormatError("data directories overflow the optional header")
        for index in range(directory_count):
            rva, size = read_struct("<II", data, directories_offset + index * 8)
            self.directories.append(DataDirectory(rva=rva, size=size))

        section_offset = optional_offset + optional_header_size
        for index in range(section_count):
            base = section_offset + index * _SECTION_HEADER_SIZE
            raw_name, virtual_size, virtual_address, raw_size, raw_pointer = read_struct(
                "<8sIIII", data, base
            )
            self.sections.append(
                SectionHeader(
                    name=raw_name.rstrip(b"\x00").decode("ascii", errors="replace"),
                    virtual_size=virtual_size,
                    virtual_address=virtual_address,
                    raw_size=raw_size,
                    raw_pointer=raw_pointer,
                )
            )

    def directory(self, index: int) -> Optional[DataDirectory]:
        if index >= len(self.directories):
            return None
        entry = self.directories[index]
        return entry if entry.present else None

    @property
    def has_cli_header(self) -> bool:
        return self.directory(CLI_HEADER_DIRECTORY) is not None

    def rva_to_offset(self, rva: int) -> int:
        for section in self.sections:
            if section.contains(rva):
                offset = rva - section.virtual_address
                if offset >= section.raw_size:
                    raise BadImageFormatError(f"RVA {rva:#x} points into uninitialised data")
                return section.raw_pointer + offset
        raise BadImageFormatError(f"RVA {rva:#x} is not mapped by any section")

    def read_rva(self, rva: int, size: int) -> bytes:
        offset = self.rva_to_offset(rva)
        end = offset + size
        if end > len(self._data):
            raise BadImageFormatError(f"block at RVA {rva:#x} runs past end of file")
        return self._data[offset:end]

    def metadata_block(self) -> bytes:
        """Return the raw metadata blob referenced by the CLI header."""
        cli = self.directory(CLI_HEADER_DIRECTORY)
        if cli is None:
            raise BadImageFormatError("image has no CLI header")
        if cli.size < _CLI_HEADER_MIN_SIZE:
            raise BadImageFormatError("CLI header is too small")
        header = self.read_rva(cli.rva, _CLI_HEADER_MIN_SIZE)
        _cb, _major, _minor, metadata_rva, metadata_size = read_struct("<IHHII", header, 0)
        if metadata_rva == 0 or metadata_size == 0:
            raise BadImageFormatError("CLI header has no metadata directory")
        return self.read_rva(metadata_rva, metadata_size)


__all__ = [
    "BadImageFormatError",
    "CLI_HEADER_DIRECTORY",
    "DataDirectory",
    "PEImage",
    "SectionHeader",
    "read_struct",
]

"""Helpers for writing synthetic PE images with CLI metadata in tests."""

from __future__ import annotations

import struct
from pathlib import Path
from typing import List, Optional, Tuple

_SECTION_RVA = 0x2000
_FILE_ALIGNMENT = 0x200
_CLI_HEADER_SIZE = 72

_TYPE_REF = 0x01
_ASSEMBLY = 0x20


def _align(value: int, alignment: int) -> int:
    return (value + alignment - 1) & ~(alignment - 1)


def _pad(data: bytes, alignment: int) -> bytes:
    return data + b"\x00" * (_align(len(data), alignment) - len(data))


def _index(value: int, width: int) -> bytes:
    return struct.pack("<H" if width == 2 else "<I", value)


def build_metadata(
    *,
    assembly_name: Optional[str],
    culture: str = "",
    type_refs: int = 0,
    heap_sizes: int = 0,
    uncompressed: bool = False,
) -> bytes:
    """Return a metadata root with Module, optional TypeRef and optional Assembly tables."""
    strings = bytearray(b"\x00")

    def intern(text: str) -> int:
        if not text:
            return 0
        offset = len(strings)
        strings.extend(text.encode("utf-8") + b"\x00")
        return offset

    string_width = 4 if heap_sizes & 0x01 else 2
    guid_width = 4 if heap_sizes & 0x02 else 2
    blob_width = 4 if heap_sizes & 0x04 else 2

    module_name = intern(f"{assembly_name or 'Secondary'}.dll")
    rows: List[Tuple[int, int, bytes]] = []

    module_row = (
        struct.pack("<H", 0)
        + _index(module_name, string_width)
        + _index(1, guid_width)
        + _index(0, guid_width)
        + _index(0, guid_width)
    )
    rows.append((0x00, 1, module_row))

    if type_refs:
        scope_width = 4 if type_refs >= (1 << 14) else 2
        type_name = intern("Object")
        type_namespace = intern("System")
        row = (
            _index(0, scope_width)
            + _index(type_name, string_width)
            + _index(type_namespace, string_width)
        )
        rows.append((_TYPE_REF, type_refs, row * type_refs))

    if assembly_name is not None:
        name_index = intern(assembly_name)
        culture_index = intern(culture)
        row = (
            struct.pack("<IHHHHI", 0x8004, 1, 0, 0, 0, 0)
            + _index(0, blob_width)
            + _index(name_index, string_width)
            + _index(culture_index, string_width)
        )
        rows.append((_ASSEMBLY, 1, row))

    valid = 0
    for table, _, _ in rows:
        valid |= 1 << table
    tables = bytearray(struct.pack("<IBBBBQQ", 0, 2, 0, heap_sizes, 1, valid, 0))
    for _, count, _ in rows:
        tables.extend(struct.pack("<I", count))
    if heap_sizes & 0x40:
        tables.extend(struct.pack("<I", 0))
    for _, _, payload in rows:
        tables.extend(payload)

    tables_stream = _pad(bytes(tables), 4)
    strings_stream = _pad(bytes(strings), 4)

    version = _pad(b"v4.0.30319\x00", 4)
    table_name = _pad(b"#-\x00" if uncompressed else b"#~\x00", 4)
    strings_name = _pad(b"#Strings\x00", 4)
    header_size = 16 + len(version) + 4 + (8 + len(table_name)) + (8 + len(strings_name))

    root = bytearray(struct.pack("<IHHII", 0x424A5342, 1, 1, 0, len(version)))
    root.extend(version)
    root.extend(struct.pack("<HH", 0, 2))
    root.extend(struct.pack("<II", header_size, len(tables_stream)))
    root.extend(table_name)
    root.extend(struct.pack("<II", header_size + len(tables_stream), len(strings_stream)))
    root.extend(strings_name)
    root.extend(tables_stream)
    root.extend(strings_stream)
    return bytes(root)


def build_pe_image(metadata: Optional[bytes] = None, *, pe32_plus: bool = False) -> bytes:
    """Wrap ``metadata`` in a single-section PE image; None yields a native image."""
    if metadata is not None:
        cli_header = struct.pack(
            "<IHHIII", _CLI_HEADER_SIZE, 2, 5, _SECTION_RVA + _CLI_HEADER_SIZE, len(metadata), 1
        )
        section_data = cli_header.ljust(_CLI_HEADER_SIZE, b"\x00") + metadata
        cli_directory = (_SECTION_RVA, _CLI_HEADER_SIZE)
    else:
        section_data = b"\x55\x8b\xec\xc3" * 4
        cli_directory = (0, 0)

    magic, count_offset = (0x20B, 108) if pe32_plus else (0x10B, 92)
    optional_size = count_offset + 4 + 16 * 8
    optional = bytearray(optional_size)
    struct.pack_into("<H", optional, 0, magic)
    struct.pack_into("<I", optional, count_offset, 16)
    struct.pack_into("<II", optional, count_offset + 4 + 14 * 8, *cli_directory)

    dos = bytearray(64)
    dos[0:2] = b"MZ"
    struct.pack_into("<I", dos, 0x3C, len(dos))

    machine = 0x8664 if pe32_plus else 0x14C
    coff = struct.pack("<HHIIIHH", machine, 1, 0, 0, 0, optional_size, 0x2022)
    raw_size = _align(len(section_data), _FILE_ALIGNMENT)
    section = struct.pack(
        "<8sIIIIIIHHI",
        b".text",
        len(section_data),
        _SECTION_RVA,
        raw_size,
        _FILE_ALIGNMENT,
        0,
        0,
        0,
        0,
        0x60000020,
    )

    headers = _pad(bytes(dos) + b"PE\x00\x00" + coff + bytes(optional) + section, _FILE_ALIGNMENT)
    return headers + _pad(section_data, _FILE_ALIGNMENT)


class ImageBuilder:
    """Writes synthetic binaries into a throwaway directory."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "bin"
        self.root.mkdir()

    def write(self, relative: str, data: bytes) -> str:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return str(path)

    def assembly(
        self,
        relative: str,
        *,
        name: Optional[str] = None,
        culture: str = "",
        pe32_plus: bool = False,
        **metadata_options: object,
    ) -> str:
        assembly_name = name or Path(relative).stem
        metadata = build_metadata(assembly_name=assembly_name, culture=culture, **metadata_options)  # type: ignore[arg-type]
        return self.write(relative, build_pe_image(metadata, pe32_plus=pe32_plus))

    def module(self, relative: str) -> str:
        return self.write(relative, build_pe_image(build_metadata(assembly_name=None)))

    def native(self, relative: str) -> str:
        return self.write(relative, build_pe_image(None))


__all__ = ["ImageBuilder", "build_metadata", "build_pe_image"]

"""ECMA-335 metadata reader for the assembly identity record.

The Assembly table (0x20) sits after every lower-numbered table in the table
stream, so reaching its Culture column means computing the row size of each
preceding table. Row sizes depend on heap index widths and on simple and coded
index widths, which in turn depend on the row counts of the referenced tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .pe import BadImageFormatError, read_struct

METADATA_SIGNATURE = 0x424A5342  # "BSJB"

ASSEMBLY_TABLE = 0x20
_TABLE_COUNT = 64

_HEAP_STRINGS_WIDE = 0x01
_HEAP_GUID_WIDE = 0x02
_HEAP_BLOB_WIDE = 0x04
_HEAP_EXTRA_DATA = 0x40

# Table ids referenced by the schema below.
MODULE = 0x00
TYPE_REF = 0x01
TYPE_DEF = 0x02
FIELD_PTR = 0x03
FIELD = 0x04
METHOD_PTR = 0x05
METHOD_DEF = 0x06
PARAM_PTR = 0x07
PARAM = 0x08
INTERFACE_IMPL = 0x09
MEMBER_REF = 0x0A
CONSTANT = 0x0B
CUSTOM_ATTRIBUTE = 0x0C
FIELD_MARSHAL = 0x0D
DECL_SECURITY = 0x0E
CLASS_LAYOUT = 0x0F
FIELD_LAYOUT = 0x10
STAND_ALONE_SIG = 0x11
EVENT_MAP = 0x12
EVENT_PTR = 0x13
EVENT = 0x14
PROPERTY_MAP = 0x15
PROPERTY_PTR = 0x16
PROPERTY = 0x17
METHOD_SEMANTICS = 0x18
METHOD_IMPL = 0x19
MODULE_REF = 0x1A
TYPE_SPEC = 0x1B
IMPL_MAP = 0x1C
FIELD_RVA = 0x1D
ENC_LOG = 0x1E
ENC_MAP = 0x1F
ASSEMBLY_REF = 0x23
FILE = 0x26
EXPORTED_TYPE = 0x27
MANIFEST_RESOURCE = 0x28
GENERIC_PARAM = 0x2A
METHOD_SPEC = 0x2B
GENERIC_PARAM_CONSTRAINT = 0x2C

# Coded index families: (tag bits, candidate tables). None marks an unused tag.
_CODED_INDEXES: Dict[str, Tuple[int, Tuple[Optional[int], ...]]] = {
    "TypeDefOrRef": (2, (TYPE_DEF, TYPE_REF, TYPE_SPEC)),
    "HasConstant": (2, (FIELD, PARAM, PROPERTY)),
    "HasCustomAttribute": (
        5,
        (
            METHOD_DEF, FIELD, TYPE_REF, TYPE_DEF, PARAM, INTERFACE_IMPL, MEMBER_REF,
            MODULE, DECL_SECURITY, PROPERTY, EVENT, STAND_ALONE_SIG, MODULE_REF,
            TYPE_SPEC, ASSEMBLY_TABLE, ASSEMBLY_REF, FILE, EXPORTED_TYPE,
            MANIFEST_RESOURCE, GENERIC_PARAM, GENERIC_PARAM_CONSTRAINT, METHOD_SPEC,
        ),
    ),
    "HasFieldMarshal": (1, (FIELD, PARAM)),
    "HasDeclSecurity": (2, (TYPE_DEF, METHOD_DEF, ASSEMBLY_TABLE)),
    "MemberRefParent": (3, (TYPE_DEF, TYPE_REF, MODULE_REF, METHOD_DEF, TYPE_SPEC)),
    "HasSemantics": (1, (EVENT, PROPERTY)),
    "MethodDefOrRef": (1, (METHOD_DEF, MEMBER_REF)),
    "MemberForwarded": (1, (FIELD, METHOD_DEF)),
    "CustomAttributeType": (3, (None, None, METHOD_DEF, MEMBER_REF, None)),
    "ResolutionScope": (2, (MODULE, MODULE_REF, ASSEMBLY_REF, TYPE_REF)),
}

# Column kinds: an int is a fixed byte width, "string"/"guid"/"blob" are heap
# indexes, ("table", id) is a simple index and ("coded", name) a coded index.
Column = Union[int, str, Tuple[str, Union[int, str]]]

_SCHEMA: Dict[int, Sequence[Column]] = {
    MODULE: (2, "string", "guid", "guid", "guid"),
    TYPE_REF: (("coded", "ResolutionScope"), "string", "string"),
    TYPE_DEF: (
        4, "string", "string", ("coded", "TypeDefOrRef"),
        ("table", FIELD), ("table", METHOD_DEF),
    ),
    FIELD_PTR: (("table", FIELD),),
    FIELD: (2, "string", "blob"),
    METHOD_PTR: (("table", METHOD_DEF),),
    METHOD_DEF: (4, 2, 2, "string", "blob", ("table", PARAM)),
    PARAM_PTR: (("table", PARAM),),
    PARAM: (2, 2, "string"),
    INTERFACE_IMPL: (("table", TYPE_DEF), ("coded", "TypeDefOrRef")),
    MEMBER_REF: (("coded", "MemberRefParent"), "string", "blob"),
    CONSTANT: (2, ("coded", "HasConstant"), "blob"),
    CUSTOM_ATTRIBUTE: (
        ("coded", "HasCustomAttribute"), ("coded", "CustomAttributeType"), "blob",
    ),
    FIELD_MARSHAL: (("coded", "HasFieldMarshal"), "blob"),
    DECL_SECURITY: (2, ("coded", "HasDeclSecurity"), "blob"),
    CLASS_LAYOUT: (2, 4, ("table", TYPE_DEF)),
    FIELD_LAYOUT: (4, ("table", FIELD)),
    STAND_ALONE_SIG: ("blob",),
    EVENT_MAP: (("table", TYPE_DEF), ("table", EVENT)),
    EVENT_PTR: (("table", EVENT),),
    EVENT: (2, "string", ("coded", "TypeDefOrRef")),
    PROPERTY_MAP: (("table", TYPE_DEF), ("table", PROPERTY)),
    PROPERTY_PTR: (("table", PROPERTY),),
    PROPERTY: (2, "string", "blob"),
    METHOD_SEMANTICS: (2, ("table", METHOD_DEF), ("coded", "HasSemantics")),
    METHOD_IMPL: (
        ("table", TYPE_DEF), ("coded", "MethodDefOrRef"), ("coded", "MethodDefOrRef"),
    ),
    MODULE_REF: ("string",),
    TYPE_SPEC: ("blob",),
    IMPL_MAP: (2, ("coded", "MemberForwarded"), "string", ("table", MODULE_REF)),
    FIELD_RVA: (4, ("table", FIELD)),
    ENC_LOG: (4, 4),
    ENC_MAP: (4,),
    # HashAlgId, Major, Minor, Build, Revision, Flags, PublicKey, Name, Culture
    ASSEMBLY_TABLE: (4, 2, 2, 2, 2, 4, "blob", "string", "string"),
}


@dataclass(frozen=True)
class StreamHeader:
    name: str
    offset: int
    size: int


def _align4(value: int) -> int:
    return (value + 3) & ~3


class MetadataReader:
    """Reads the metadata root, stream directory and the Assembly table."""

    def __init__(self, block: bytes) -> None:
        self._block = block
        self.version = ""
        self.streams: Dict[str, StreamHeader] = {}
        self.row_counts: List[int] = [0] * _TABLE_COUNT
        self._heap_sizes = 0
        self._tables_offset = 0
        self._parse_root()
        self._parse_table_header()

    def _parse_root(self) -> None:
        block = self._block
        (signature,) = read_struct("<I", block, 0)
        if signature != METADATA_SIGNATURE:
            raise BadImageFormatError("invalid metadata signature")
        (version_length,) = read_struct("<I", block, 12)
        version_end = 16 + version_length
        if version_end > len(block):
            raise BadImageFormatError("metadata version string is truncated")
        self.version = block[16:version_end].split(b"\x00", 1)[0].decode("utf-8", "replace")

        offset = 16 + _align4(version_length)
        _flags, stream_count = read_struct("<HH", block, offset)
        offset += 4
        for _ in range(stream_count):
            stream_offset, stream_size = read_struct("<II", block, offset)
            offset += 8
            terminator = block.find(b"\x00", offset, offset + 32)
            if terminator < 0:
                raise BadImageFormatError("unterminated stream name")
            name = block[offset:terminator].decode("ascii", "replace")
            offset = _align4(terminator + 1)
            if stream_offset + stream_size > len(block):
                raise BadImageFormatError(f"stream {name} runs past the metadata block")
            self.streams[name] = StreamHeader(name=name, offset=stream_offset, size=stream_size)

    def _stream(self, *names: str) -> Optional[StreamHeader]:
        for name in names:
            if name in self.streams:
                return self.streams[name]
        return None

    def _parse_table_header(self) -> None:
        tables = self._stream("#~", "#-")
        if tables is None:
            raise BadImageFormatError("metadata has no table stream")
        base = tables.offset
        (self._heap_sizes,) = read_struct("<B", self._block, base + 6)
        (valid,) = read_struct("<Q", self._block, base + 8)
        offset = base + 24
        for table in range(_TABLE_COUNT):
            if valid & (1 << table):
                (self.row_counts[table],) = read_struct("<I", self._block, offset)
                offset += 4
        if self._heap_sizes & _HEAP_EXTRA_DATA:
            offset += 4
        self._tables_offset = offset

    # Column widths

    def _heap_width(self, flag: int) -> int:
        return 4 if self._heap_sizes & flag else 2

    def _table_index_width(self, table: int) -> int:
        return 2 if self.row_counts[table] < (1 << 16) else 4

    def _coded_index_width(self, family: str) -> int:
        tag_bits, tables = _CODED_INDEXES[family]
        limit = 1 << (16 - tag_bits)
        largest = max((self.row_counts[t] for t in tables if t is not None), default=0)
        return 2 if largest < limit else 4

    def _column_width(self, column: Column) -> int:
        if isinstance(column, int):
            return column
        if column == "string":
            return self._heap_width(_HEAP_STRINGS_WIDE)
        if column == "guid":
            return self._heap_width(_HEAP_GUID_WIDE)
        if column == "blob":
            return self._heap_width(_HEAP_BLOB_WIDE)
        kind, target = column  # type: ignore[misc]
        if kind == "table":
            return self._table_index_width(target)
        return self._coded_index_width(target)

    def row_size(self, table: int) -> int:
        return sum(self._column_width(column) for column in _SCHEMA[table])

    def table_offset(self, table: int) -> int:
        offset = self._tables_offset
        for preceding in range(table):
            rows = self.row_counts[preceding]
            if not rows:
                continue
            if preceding not in _SCHEMA:
                raise BadImageFormatError(f"unsupported metadata table {preceding:#x}")
            offset += rows * self.row_size(preceding)
        return offset

    # Assembly identity

    @property
    def is_assembly(self) -> bool:
        return self.row_counts[ASSEMBLY_TABLE] > 0

    def _read_index(self, offset: int, width: int) -> int:
        fmt = "<H" if width == 2 else "<I"
        (value,) = read_struct(fmt, self._block, offset)
        return value

    def _assembly_string_columns(self) -> Tuple[int, int]:
        """Return the #Strings indexes of the Assembly row's Name and Culture."""
        tables = self._stream("#~", "#-")
        if tables is None:
            raise BadImageFormatError("metadata has no table stream")
        row = self.table_offset(ASSEMBLY_TABLE)
        row_end = row + self.row_size(ASSEMBLY_TABLE)
        if row_end > tables.offset + tables.size:
            raise BadImageFormatError("Assembly row lies outside the table stream")
        offset = row + 16 + self._heap_width(_HEAP_BLOB_WIDE)
        string_width = self._heap_width(_HEAP_STRINGS_WIDE)
        name = self._read_index(offset, string_width)
        culture = self._read_index(offset + string_width, string_width)
        return name, culture

    def get_string(self, index: int) -> str:
        heap = self._stream("#Strings")
        if heap is None:
            if index == 0:
                return ""
            raise BadImageFormatError("metadata has no #Strings heap")
        if index >= heap.size:
            raise BadImageFormatError(f"string index {index:#x} is out of range")
        start = heap.offset + index
        end = self._block.find(b"\x00", start, heap.offset + heap.size)
        if end < 0:
            raise BadImageFormatError("unterminated string in #Strings heap")
        return self._block[start:end].decode("utf-8", "replace")

    @property
    def assembly_name(self) -> str:
        name, _ = self._assembly_string_columns()
        return self.get_string(name)

    @property
    def assembly_culture(self) -> str:
        _, culture = self._assembly_string_columns()
        return self.get_string(culture)


__all__ = ["ASSEMBLY_TABLE", "METADATA_SIGNATURE", "MetadataReader", "StreamHeader"]

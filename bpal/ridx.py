"""Resource index (RIdx) parsing.

Layout, right after the 'RIdx' tag (all u32 big-endian):
  +0  byte length of the rest of the index = 4 + 12 * count
  +4  count
  +8  count * { usage tag, resource number, chunk offset }
"""

from collections import namedtuple

from bpal.common.iff import format_tag, read_exact, read_u32, read_u32_be
from bpal.errors import DuplicateId, DuplicateOffset, IndexSizeMismatch, UnsupportedUsage

PICT_USAGE = b'Pict'
EXEC_USAGE = b'Exec'

RIDX_ENTRY_SIZE = 12
# Entries start after FORM, length, IFRS, RIdx, index length and count.
RIDX_ENTRIES_START = 24

IndexEntry = namedtuple('IndexEntry', ['usage', 'number', 'offset'])


class ResourceIndex:
    def __init__(self, entries):
        self.entries = list(entries)
        self.offset_to_id = {}
        id_to_offset = {}
        self.max_id = None
        for entry in self.entries:
            if entry.offset in self.offset_to_id:
                raise DuplicateOffset(
                    f"duplicate offset 0x{entry.offset:x} for id {entry.number} "
                    f"(already used by id {self.offset_to_id[entry.offset]})")
            if entry.number in id_to_offset:
                raise DuplicateId(
                    f"picture {entry.number} listed at offsets 0x{id_to_offset[entry.number]:x} "
                    f"and 0x{entry.offset:x}")
            id_to_offset[entry.number] = entry.offset
            self.offset_to_id[entry.offset] = entry.number
            if self.max_id is None or entry.number > self.max_id:
                self.max_id = entry.number


def ridx_entry_offset(i):
    """File offset of index entry i."""
    return RIDX_ENTRIES_START + i * RIDX_ENTRY_SIZE

def ridx_size(count):
    return 4 + count * RIDX_ENTRY_SIZE

def parse_ridx(f):
    """Parse the resource index from stream f, positioned after the 'RIdx' tag."""
    size = read_u32(f, 'RIdx length')
    count = read_u32(f, 'RIdx count')
    if size != ridx_size(count):
        raise IndexSizeMismatch(
            f"RIdx mismatch: length {size} does not match {count} entries "
            f"(expected {ridx_size(count)})")

    raw = read_exact(f, count * RIDX_ENTRY_SIZE, 'RIdx entries')
    entries = []
    for i in range(count):
        base = i * RIDX_ENTRY_SIZE
        usage = raw[base:base+4]
        if usage != PICT_USAGE:
            raise UnsupportedUsage(f"unknown resource usage: {format_tag(usage)}")
        entries.append(IndexEntry(usage, read_u32_be(raw, base + 4), read_u32_be(raw, base + 8)))

    return ResourceIndex(entries)

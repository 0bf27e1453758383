"""Blorb container writer.

The index has to hold the final offset of every picture chunk, which is only
known once everything before it is written. The file is therefore built
forward into a buffer with zero placeholders, the placeholder positions are
recorded as patch sites, and the recorded values are filled in at the end.
"""

import io
import os
import stat
import struct
import tempfile

from bpal.blorb import BPAL, FORM, IFRS, RIDX
from bpal.common.iff import pack_u32_be, write_chunk
from bpal.errors import EmptySubstitutionTable
from bpal.ridx import EXEC_USAGE, PICT_USAGE, ridx_entry_offset, ridx_size

FORM_LENGTH_OFFSET = 4


class PatchBuffer:
    """Append-only output buffer with deferred u32 patches."""

    def __init__(self):
        self.out = io.BytesIO()
        self.patches = []

    def write(self, data):
        self.out.write(data)

    def tell(self):
        return self.out.tell()

    def patch_u32(self, pos, value):
        self.patches.append((pos, value))

    def getvalue(self):
        buf = bytearray(self.out.getvalue())
        for pos, value in self.patches:
            struct.pack_into('>I', buf, pos, value)
        return bytes(buf)


def bpal_payload(entries):
    return b''.join(struct.pack('>III', e.palette, e.requested, e.id) for e in entries)


def serialize_blorb(doc):
    """Return the bytes of a Blorb file holding doc's chunks, pictures, exec and BPal table."""
    if not doc.bpal:
        raise EmptySubstitutionTable("BPal chunk is empty")

    numbers = sorted(doc.picts)
    usages = [(PICT_USAGE, number) for number in numbers]
    if doc.exec is not None:
        usages.append((EXEC_USAGE, 0))

    buf = PatchBuffer()
    buf.write(FORM + pack_u32_be(0) + IFRS + RIDX)
    buf.write(pack_u32_be(ridx_size(len(usages))))
    buf.write(pack_u32_be(len(usages)))
    for usage, number in usages:
        buf.write(usage + pack_u32_be(number) + pack_u32_be(0))  # offset placeholder

    for chunk in doc.chunks:
        write_chunk(buf, chunk.tag, chunk.data)

    offsets = []
    for number in numbers:
        chunk = doc.picts[number]
        offsets.append(buf.tell())
        write_chunk(buf, chunk.tag, chunk.data)

    if doc.exec is not None:
        offsets.append(buf.tell())
        write_chunk(buf, doc.exec_type, doc.exec)

    write_chunk(buf, BPAL, bpal_payload(doc.bpal))

    for i, offset in enumerate(offsets):
        buf.patch_u32(ridx_entry_offset(i) + 8, offset)
    buf.patch_u32(FORM_LENGTH_OFFSET, buf.tell() - 8)

    return buf.getvalue()


def output_mode(path):
    """Permissions for a new output file: the existing file's, else 0666 minus umask."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_blorb(path, doc):
    """Serialize doc and move it into place at path only once fully written."""
    data = serialize_blorb(doc)

    dirname = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix='.bpal-', suffix='.tmp', dir=dirname)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.chmod(tmp_path, output_mode(path))
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise
    return len(data)

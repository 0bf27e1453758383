"""Blorb container reader.

A Blorb file is an IFF FORM of type IFRS:

  0x00  'FORM'  u32 length (file size - 8)
  0x08  'IFRS'
  0x0C  'RIdx'  resource index (see ridx.py)
  ....  chunk stream, each chunk 'tag' u32 length payload [pad]

Only picture resources are supported. Pictures are keyed by the resource
number their offset maps to in the index; every other known chunk is kept
in arrival order and copied through untouched.
"""

import io
import struct
from collections import namedtuple

from bpal.common.iff import format_tag, read_chunk, read_exact, read_u32
from bpal.errors import (AlreadySubstituted, DanglingPaletteReference, MalformedPaletteList,
                         MissingImage, MissingPaletteList, NoPaletteImages, NotABlorb, TruncatedInput,
                         UnknownChunk, UnreferencedImage)
from bpal.ridx import parse_ridx

FORM = b'FORM'
IFRS = b'IFRS'
RIDX = b'RIdx'

APAL = b'APal'
BPAL = b'BPal'
PNG = b'PNG '
RECT = b'Rect'
ZCOD = b'ZCOD'

PASSTHROUGH_TAGS = {b'IFhd', b'SNam', b'(c) ', b'AUTH', b'RelN', b'Reso', APAL}
PICTURE_TAGS = {PNG, RECT}

# One BPal record: show `id` in place of `requested` while `palette` is active.
BPalEntry = namedtuple('BPalEntry', ['palette', 'requested', 'id'])


class Document:
    """In-memory state of a Blorb file being transcoded."""

    def __init__(self):
        self.size = 0
        self.chunks = []
        self.picts = {}
        self.apal_ids = []
        self.max_id = None
        self.exec = None
        self.exec_type = ZCOD
        self.bpal = []

    def first_free_id(self, floor=1000):
        if self.max_id is None:
            return floor
        return max(floor, self.max_id + 1)


def find_apal_images(chunks):
    """Return the picture ids listed in the APal chunk, in declared order."""
    apal = next((chunk for chunk in chunks if chunk.tag == APAL), None)
    if apal is None:
        raise MissingPaletteList("no APal chunk found")

    if len(apal.data) % 4 != 0:
        raise MalformedPaletteList(f"invalid APal size: {len(apal.data)}")

    count = len(apal.data) // 4
    ids = struct.unpack('>%dI' % count, apal.data)
    # Repeated ids collapse to their first appearance.
    return list(dict.fromkeys(ids))


def parse_blorb(data):
    """Parse a complete Blorb file held in memory and return a Document."""
    f = io.BytesIO(data)
    doc = Document()

    if read_exact(f, 4, 'FORM tag') != FORM:
        raise NotABlorb("not a blorb: missing FORM tag")
    doc.size = read_u32(f, 'FORM length')
    if read_exact(f, 4, 'form type') != IFRS or read_exact(f, 4, 'index tag') != RIDX:
        raise NotABlorb("not a blorb: expected IFRS form starting with RIdx")

    end = doc.size + 8
    if end > len(data):
        raise TruncatedInput(
            f"FORM declares {doc.size} bytes but the file holds only {len(data) - 8}")

    index = parse_ridx(f)
    doc.max_id = index.max_id

    while f.tell() < end:
        chunk = read_chunk(f, limit=end)

        if chunk.tag in PASSTHROUGH_TAGS:
            doc.chunks.append(chunk)
        elif chunk.tag in PICTURE_TAGS:
            number = index.offset_to_id.get(chunk.offset)
            if number is None:
                raise UnreferencedImage(
                    f"found {format_tag(chunk.tag)} chunk at offset 0x{chunk.offset:x}, "
                    f"but no RIdx entries reference it")
            doc.picts[number] = chunk
        elif chunk.tag == BPAL:
            raise AlreadySubstituted("this file already has a BPal chunk")
        else:
            raise UnknownChunk(f"unknown chunk: {format_tag(chunk.tag)} @0x{chunk.offset:x}")

    for entry in index.entries:
        if entry.number not in doc.picts:
            raise MissingImage(
                f"RIdx entry for picture {entry.number} points at offset 0x{entry.offset:x}, "
                f"where no picture chunk starts")

    doc.apal_ids = find_apal_images(doc.chunks)
    if not doc.apal_ids:
        raise NoPaletteImages("no APal images found")
    for apal_id in doc.apal_ids:
        if apal_id not in doc.picts:
            raise DanglingPaletteReference(f"APal references image {apal_id}, which does not exist")

    return doc


def load_blorb(path):
    with open(path, 'rb') as f:
        data = f.read()
    return parse_blorb(data)


def describe_blorb(doc):
    """Yield printable lines describing a parsed Document."""
    yield f"FORM length {doc.size}, {len(doc.picts)} pictures, {len(doc.chunks)} other chunks"
    for chunk in doc.chunks:
        yield f"  0x{chunk.offset:08x}  {format_tag(chunk.tag)}  {len(chunk.data)} bytes"
    for number in sorted(doc.picts):
        chunk = doc.picts[number]
        marker = '  [APal]' if number in doc.apal_ids else ''
        yield (f"  0x{chunk.offset:08x}  {format_tag(chunk.tag)}  {len(chunk.data)} bytes"
               f"  Pict {number}{marker}")

import struct
from collections import namedtuple

from bpal.errors import TruncatedInput

# A chunk as read from a container; offset is where its tag starts.
Chunk = namedtuple('Chunk', ['tag', 'data', 'offset'], defaults=(None,))


def read_u32_be(data, offset=0):
    return struct.unpack('>I', data[offset:offset+4])[0]

def pack_u32_be(val):
    return struct.pack('>I', val)

def format_tag(tag):
    """
    Render a 4-byte tag for messages: hex value plus its printable form,
    with unprintable bytes shown as spaces.
    """
    text = ''.join(chr(c) if 0x20 <= c < 0x7f else ' ' for c in tag)
    return f"0x{read_u32_be(tag):08x} ({text})"

def chunk_size(data):
    """Bytes taken by a chunk on disk: header, payload, pad."""
    return 8 + len(data) + (len(data) & 1)


def read_exact(f, size, what):
    pos = f.tell()
    raw = f.read(size)
    if len(raw) < size:
        raise TruncatedInput(
            f"truncated {what} at offset 0x{pos:x}: wanted {size} bytes, got {len(raw)}")
    return raw

def read_u32(f, what='field'):
    return read_u32_be(read_exact(f, 4, what))

def read_chunk(f, limit=None):
    """Read one chunk from stream f.

    Returns a Chunk whose offset is the position of its tag. If limit is
    given, the chunk (including the pad byte) must end at or before it.
    """
    offset = f.tell()
    header = read_exact(f, 8, 'chunk header')
    tag = header[:4]
    size = read_u32_be(header, 4)
    end = offset + 8 + size
    if limit is not None and end > limit:
        raise TruncatedInput(
            f"chunk {format_tag(tag)} at offset 0x{offset:x} declares {size} bytes, "
            f"past the end of the container at 0x{limit:x}")
    data = read_exact(f, size, f"chunk {format_tag(tag)}")
    if size % 2 == 1:
        # Pad byte of a final odd-sized chunk may be absent.
        f.read(1)
    return Chunk(tag, data, offset)

def write_chunk(f, tag, data):
    f.write(tag)
    f.write(pack_u32_be(len(data)))
    f.write(data)
    if len(data) % 2 == 1:
        f.write(b'\x00')

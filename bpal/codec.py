"""PNG decoding/encoding for indexed-colour pictures.

Colour tables are handled as (N, 4) uint8 RGBA arrays: the PLTE entries,
with alpha taken from the tRNS chunk where the file has one.
"""

import io

import numpy as np
from PIL import Image

from bpal.errors import DecodeError, EncodeError, NonIndexedPalette

# Entries 0 and 1 are the interpreter's control colours and never substituted.
RESERVED_COLOURS = 2


def decode_png(data, what='image'):
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"unable to load PNG for {what}: {e}") from e
    return img

def encode_png(img, what='image'):
    buf = io.BytesIO()
    try:
        img.save(buf, format='PNG')
    except (OSError, ValueError) as e:
        raise EncodeError(f"unable to store {what} as PNG: {e}") from e
    return buf.getvalue()


def color_table(img):
    """Return the RGBA colour table of a palette image (empty if not indexed)."""
    if img.mode != 'P':
        return np.zeros((0, 4), dtype=np.uint8)

    rgb = np.array(img.getpalette() or [], dtype=np.uint8).reshape(-1, 3)
    alpha = np.full(len(rgb), 255, dtype=np.uint8)

    trns = img.info.get('transparency')
    if isinstance(trns, bytes):
        n = min(len(trns), len(rgb))
        alpha[:n] = np.frombuffer(trns, dtype=np.uint8)[:n]
    elif isinstance(trns, int) and 0 <= trns < len(rgb):
        alpha[trns] = 0

    return np.column_stack([rgb, alpha])

def set_color_table(img, table):
    img.putpalette(table[:, :3].tobytes(), 'RGB')
    alpha = table[:, 3]
    if (alpha != 255).any():
        img.info['transparency'] = alpha.tobytes()
    else:
        img.info.pop('transparency', None)


def load_palette(data, apal_id):
    """Decode an APal picture, which must be 8-bit indexed colour."""
    img = decode_png(data, f"APal image {apal_id}")
    if img.mode != 'P':
        raise NonIndexedPalette(f"palette source {apal_id} not indexed (mode {img.mode})")
    return color_table(img)


def convert_palette(img, palette):
    """
    Re-colour a decoded picture with a reference palette and return PNG bytes.

    The picture keeps its own pixels and its first RESERVED_COLOURS table
    entries; every later entry present in both tables comes from palette.
    """
    converted = img.copy()
    dst = color_table(converted)
    n = min(len(dst), len(palette))
    if n > RESERVED_COLOURS:
        dst[RESERVED_COLOURS:n] = palette[RESERVED_COLOURS:n]
        set_color_table(converted, dst)
    return encode_png(converted)

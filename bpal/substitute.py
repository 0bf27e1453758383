"""Palette substitution: build the BPal table for a Document.

Every PNG picture that is not itself an APal image is re-coloured once per
APal image. Identical results share one picture id. Each (picture, APal)
pair gets its own BPal entry, cache hit or not.

Ordering: pictures by ascending id, APal images in the order the APal chunk
lists them.
"""

from bpal.blorb import PNG, BPalEntry
from bpal.codec import convert_palette, decode_png, load_palette
from bpal.common.iff import Chunk
from bpal.errors import IdSpaceExhausted

FIRST_CONVERTED_ID = 1000
MAX_ID = 0xFFFFFFFF


class ImageCache:
    """Content-addressed store of generated pictures.

    Keys are the exact encoded bytes. Ids are handed out sequentially from
    next_id the first time a given content is seen.
    """

    def __init__(self, next_id):
        self.next_id = next_id
        self.ids = {}
        self.images = {}

    def add(self, data):
        number = self.ids.get(data)
        if number is None:
            number = self.next_id
            if number > MAX_ID:
                raise IdSpaceExhausted(f"no picture ids left above {MAX_ID} for converted images")
            self.next_id += 1
            self.ids[data] = number
            self.images[number] = data
        return number

    def __len__(self):
        return len(self.images)


def eligible_pictures(doc):
    """Ids of the pictures to convert, ascending."""
    apal = set(doc.apal_ids)
    return [number for number in sorted(doc.picts)
            if doc.picts[number].tag == PNG and number not in apal]


def substitute_palettes(doc, optimize=None, first_id=FIRST_CONVERTED_ID, verbose=False):
    """Extend doc with converted pictures and BPal entries.

    optimize, if given, is called on each newly generated PNG before it is
    stored (see oxipng.make_optimizer). Returns the ImageCache used.
    """
    palettes = [(apal_id, load_palette(doc.picts[apal_id].data, apal_id))
                for apal_id in doc.apal_ids]

    cache = ImageCache(doc.first_free_id(first_id))

    if verbose:
        print("Converting images...")
    for number in eligible_pictures(doc):
        img = decode_png(doc.picts[number].data, f"picture {number}")
        for apal_id, palette in palettes:
            converted = convert_palette(img, palette)
            doc.bpal.append(BPalEntry(apal_id, number, cache.add(converted)))

    if optimize is not None:
        if verbose:
            print("Compressing images...")
        for number in cache.images:
            cache.images[number] = optimize(cache.images[number])

    for number, data in cache.images.items():
        doc.picts[number] = Chunk(PNG, data)

    if verbose:
        print(f"{len(doc.bpal)} BPal entries, {len(cache)} new images")
    return cache

import io

import pytest
from PIL import Image

from blorb_factory import A, B, C, D, W, X, Y, Z, apal, basic_blorb, build_blorb, make_png, png_colors
from bpal.blorb import BPalEntry, parse_blorb
from bpal.codec import color_table, decode_png
from bpal.errors import CompressionError, DecodeError, IdSpaceExhausted, NonIndexedPalette
from bpal.substitute import MAX_ID, ImageCache, eligible_pictures, substitute_palettes

E = (1, 1, 1)
F = (2, 2, 2)
P = (3, 3, 3)
Q = (4, 4, 4)


def test_single_palette_single_image():
    doc = parse_blorb(basic_blorb())
    substitute_palettes(doc)
    assert doc.bpal == [BPalEntry(1, 2, 1000)]
    assert png_colors(doc.picts[1000].data, 4) == [W, X, C, D]
    assert doc.picts[1000].tag == b'PNG '

def test_original_pictures_untouched():
    data = basic_blorb()
    before = parse_blorb(data)
    doc = parse_blorb(data)
    substitute_palettes(doc)
    for number in (1, 2):
        assert doc.picts[number].data == before.picts[number].data

def test_identical_results_share_one_id():
    pixels = [0, 1, 2, 3]
    doc = parse_blorb(build_blorb([
        (b'APal', apal(1), None),
        (b'PNG ', make_png([A, B, C, D]), 1),
        (b'PNG ', make_png([W, X, Y, Z], pixels=pixels), 2),
        (b'PNG ', make_png([W, X, P, Q], pixels=pixels), 3),
    ]))
    cache = substitute_palettes(doc)
    assert doc.bpal == [BPalEntry(1, 2, 1000), BPalEntry(1, 3, 1000)]
    assert len(cache) == 1
    assert sorted(doc.picts) == [1, 2, 3, 1000]

def test_every_pair_gets_an_entry():
    doc = parse_blorb(build_blorb([
        (b'APal', apal(5, 1), None),
        (b'PNG ', make_png([A, B, C, D]), 1),
        (b'PNG ', make_png([W, X, Y, Z]), 2),
        (b'PNG ', make_png([E, F, Y, Z]), 3),
        (b'PNG ', make_png([E, F, P, Q]), 5),
        (b'Rect', b'\x00\x00\x00\x08\x00\x00\x00\x08', 4),
    ]))
    assert eligible_pictures(doc) == [2, 3]
    substitute_palettes(doc)
    assert len(doc.bpal) == 2 * 2
    # Pictures ascending, palettes in APal order.
    assert [(e.requested, e.palette) for e in doc.bpal] == [(2, 5), (2, 1), (3, 5), (3, 1)]

def test_rect_and_palette_pictures_are_not_converted():
    doc = parse_blorb(basic_blorb([(b'Rect', b'\x00' * 8, 3)]))
    assert eligible_pictures(doc) == [2]
    substitute_palettes(doc)
    assert {e.requested for e in doc.bpal} == {2}

def test_generated_ids_above_existing_ids():
    doc = parse_blorb(build_blorb([
        (b'APal', apal(1), None),
        (b'PNG ', make_png([A, B, C, D]), 1),
        (b'PNG ', make_png([W, X, Y, Z]), 2),
        (b'PNG ', make_png([E, F, Y, Z]), 1500),
    ]))
    substitute_palettes(doc)
    resolved = [e.id for e in doc.bpal]
    assert resolved == [1501, 1502]
    assert len(set(resolved)) == len(resolved)

def test_reserved_colours_come_from_source():
    doc = parse_blorb(build_blorb([
        (b'APal', apal(1, 2), None),
        (b'PNG ', make_png([A, B, C, D]), 1),
        (b'PNG ', make_png([Y, Z, W, X]), 2),
        (b'PNG ', make_png([E, F, P, Q]), 3),
    ]))
    substitute_palettes(doc)
    for entry in doc.bpal:
        source = color_table(decode_png(doc.picts[entry.requested].data))
        generated = color_table(decode_png(doc.picts[entry.id].data))
        assert (generated[:2] == source[:2]).all()
        palette = color_table(decode_png(doc.picts[entry.palette].data))
        assert (generated[2:4] == palette[2:4]).all()

def test_optimizer_runs_once_per_new_image():
    pixels = [0, 1, 2, 3]
    doc = parse_blorb(build_blorb([
        (b'APal', apal(1), None),
        (b'PNG ', make_png([A, B, C, D]), 1),
        (b'PNG ', make_png([W, X, Y, Z], pixels=pixels), 2),
        (b'PNG ', make_png([W, X, P, Q], pixels=pixels), 3),
    ]))
    calls = []

    def optimize(data):
        calls.append(data)
        return b'optimized' + data

    substitute_palettes(doc, optimize=optimize)
    assert len(calls) == 1
    assert doc.picts[1000].data.startswith(b'optimized')

def test_optimizer_failure_is_fatal():
    doc = parse_blorb(basic_blorb())

    def optimize(data):
        raise CompressionError("oxipng exited 1")

    with pytest.raises(CompressionError):
        substitute_palettes(doc, optimize=optimize)

def test_non_indexed_palette():
    buf = io.BytesIO()
    Image.new('RGB', (2, 2)).save(buf, format='PNG')
    doc = parse_blorb(build_blorb([
        (b'APal', apal(1), None),
        (b'PNG ', buf.getvalue(), 1),
        (b'PNG ', make_png([W, X, Y, Z]), 2),
    ]))
    with pytest.raises(NonIndexedPalette):
        substitute_palettes(doc)
    assert doc.bpal == []

def test_undecodable_picture():
    doc = parse_blorb(basic_blorb([(b'PNG ', b'not a png', 3)]))
    with pytest.raises(DecodeError, match='picture 3'):
        substitute_palettes(doc)

def test_image_cache():
    cache = ImageCache(1000)
    assert cache.add(b'one') == 1000
    assert cache.add(b'two') == 1001
    assert cache.add(b'one') == 1000
    assert len(cache) == 2
    assert cache.images == {1000: b'one', 1001: b'two'}

def test_image_cache_stops_at_32_bits():
    cache = ImageCache(MAX_ID)
    assert cache.add(b'last') == MAX_ID
    assert cache.add(b'last') == MAX_ID
    with pytest.raises(IdSpaceExhausted):
        cache.add(b'one too many')

def test_no_ids_left_after_largest_picture():
    doc = parse_blorb(basic_blorb([(b'PNG ', make_png([W, X, Y, Z]), MAX_ID)]))
    with pytest.raises(IdSpaceExhausted):
        substitute_palettes(doc)

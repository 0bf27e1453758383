#!/usr/bin/env python3
"""Add a BPal palette-substitution table to a Blorb file.

Every PNG picture that is not listed in the APal chunk is re-coloured with
each APal picture's palette (colour table entries 2 and up). The results are
deduplicated, optimized with oxipng and stored as new pictures numbered from
1000 (or past the largest existing id), and a BPal chunk records which
picture to show for each (APal palette, requested picture) pair.

Usage:
  python -m bpal game.blb
  python -m bpal game.blb story.z6 -o game-bpal.blb
  python -m bpal game.blb --no-optimize
  python -m bpal game.blb --list
"""

import argparse
import sys

from bpal.blorb import ZCOD, describe_blorb, load_blorb
from bpal.errors import BpalError
from bpal.oxipng import DEFAULT_LEVEL, DEFAULT_OXIPNG, make_optimizer
from bpal.substitute import substitute_palettes
from bpal.writer import write_blorb

DEFAULT_OUTPUT = 'out.blb'


def parse_exec_type(value):
    try:
        tag = value.encode('ascii')
    except UnicodeEncodeError:
        raise argparse.ArgumentTypeError(f"chunk type must be ASCII: {value!r}")
    if len(tag) != 4:
        raise argparse.ArgumentTypeError(f"chunk type must be 4 characters: {value!r}")
    return tag


def build_parser():
    parser = argparse.ArgumentParser(prog='bpal', description="Add a BPal chunk to a Blorb file.")
    parser.add_argument('blorb', help="Source Blorb file")
    parser.add_argument('story', nargs='?', help="Story file to embed as the executable chunk")
    parser.add_argument('-o', '--output', default=DEFAULT_OUTPUT,
                        help=f"Output Blorb file (default: {DEFAULT_OUTPUT})")
    parser.add_argument('--exec-type', type=parse_exec_type, default=ZCOD,
                        help="Chunk type for the story file (default: ZCOD)")
    parser.add_argument('--oxipng', default=DEFAULT_OXIPNG,
                        help=f"oxipng executable (default: {DEFAULT_OXIPNG})")
    parser.add_argument('--level', type=int, default=DEFAULT_LEVEL, choices=range(0, 7),
                        metavar='0-6', help=f"oxipng optimization level (default: {DEFAULT_LEVEL})")
    parser.add_argument('--no-optimize', action='store_true',
                        help="Store converted images without running oxipng")
    parser.add_argument('--list', action='store_true',
                        help="Describe the source Blorb file and exit")
    return parser


def run(args):
    doc = load_blorb(args.blorb)

    if args.list:
        for line in describe_blorb(doc):
            print(line)
        return

    if args.story:
        with open(args.story, 'rb') as f:
            doc.exec = f.read()
    doc.exec_type = args.exec_type

    optimize = None if args.no_optimize else make_optimizer(args.oxipng, args.level)
    substitute_palettes(doc, optimize=optimize, verbose=True)

    size = write_blorb(args.output, doc)
    print(f"Wrote {args.output}: {size} bytes, {len(doc.picts)} images, {len(doc.bpal)} BPal entries")


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        run(args)
    except BpalError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        name = e.filename or args.blorb
        print(f"error processing {name}: {e.strerror or e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

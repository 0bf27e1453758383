"""Exceptions raised while transcoding a Blorb file.

Every failure is fatal to the run. The command line catches BpalError
(and OSError), prints one line and exits non-zero.
"""


class BpalError(Exception):
    pass


# -- container format --

class FormatError(BpalError, ValueError):
    pass

class NotABlorb(FormatError):
    pass

class TruncatedInput(FormatError):
    pass

class IndexSizeMismatch(FormatError):
    pass

class UnsupportedUsage(FormatError):
    pass

class DuplicateOffset(FormatError):
    pass

class UnreferencedImage(FormatError):
    pass

class MissingImage(FormatError):
    pass

class AlreadySubstituted(FormatError):
    pass

class UnknownChunk(FormatError):
    pass

class MissingPaletteList(FormatError):
    pass

class NoPaletteImages(MissingPaletteList):
    pass

class MalformedPaletteList(FormatError):
    pass

class DanglingPaletteReference(FormatError):
    pass

class EmptySubstitutionTable(FormatError):
    pass

class DuplicateId(FormatError):
    pass

class IdSpaceExhausted(FormatError):
    pass


# -- images --

class CodecError(BpalError):
    pass

class DecodeError(CodecError):
    pass

class EncodeError(CodecError):
    pass

class NonIndexedPalette(CodecError):
    pass


class CompressionError(BpalError):
    pass

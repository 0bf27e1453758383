"""Blorb palette-substitution (BPal) transcoder."""

__version__ = '0.1.0'

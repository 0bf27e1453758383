"""Lossless PNG recompression through the oxipng executable."""

import shutil
import subprocess

from bpal.errors import CompressionError

DEFAULT_OXIPNG = 'oxipng'
DEFAULT_LEVEL = 6


def oxipng_command(exe, level):
    return [exe, f"-o{level}", '-q', '--stdout', '-']

def run_oxipng(data, exe=DEFAULT_OXIPNG, level=DEFAULT_LEVEL):
    """Pipe PNG bytes through oxipng and return the optimized bytes."""
    path = shutil.which(exe)
    if path is None:
        raise CompressionError(f"oxipng executable not found: {exe}")

    try:
        result = subprocess.run(oxipng_command(path, level), input=data,
                                stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=True)
    except subprocess.CalledProcessError as e:
        detail = e.stderr.decode('utf-8', errors='replace').strip() if e.stderr else ''
        raise CompressionError(f"oxipng exited {e.returncode}" + (f": {detail}" if detail else '')) from e
    except OSError as e:
        raise CompressionError(f"unable to run oxipng: {e}") from e

    if not result.stdout:
        raise CompressionError("oxipng produced no output")
    return result.stdout

def make_optimizer(exe=DEFAULT_OXIPNG, level=DEFAULT_LEVEL):
    """Return a bytes -> bytes callable suitable for substitute_palettes()."""
    def optimize(data):
        return run_oxipng(data, exe=exe, level=level)
    return optimize

"""Generate TFHE gate-level C++ code from booleanified IR functions.

Also provides plaintext bit encodings and helpers for subprocesses,
temporary files and locating run files.
"""

__version__ = "0.1.0"
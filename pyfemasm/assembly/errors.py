"""pyfemasm.assembly.errors"""


class AssemblyError(RuntimeError):
    """Structural failure of a global assembly (storage size, out-of-bounds or unknown index)."""


class SparsityPatternFormatError(ValueError):
    """Offsets/indices do not describe a valid sorted, duplicate-free CSR pattern."""

"""pyfemasm.config
Environment-driven defaults. Explicit arguments always take precedence.

PYFEMASM_NUM_WORKERS       default thread count of the parallel assemblers
PYFEMASM_PROFILE_ASSEMBLY  log assembly timings at INFO when set to 1/true/yes
"""
import os

_TRUTHY = {"1", "true", "yes"}


def profile_assembly() -> bool:
    return os.getenv("PYFEMASM_PROFILE_ASSEMBLY", "").lower() in _TRUTHY


def default_num_workers() -> int:
    raw = os.getenv("PYFEMASM_NUM_WORKERS", "").strip()
    if raw:
        try:
            n = int(raw)
        except ValueError:
            raise ValueError(f"PYFEMASM_NUM_WORKERS must be an integer, got {raw!r}")
        if n < 1:
            raise ValueError(f"PYFEMASM_NUM_WORKERS must be positive, got {n}")
        return n
    return os.cpu_count() or 1


def resolve_num_workers(num_workers=None) -> int:
    if num_workers is None:
        return default_num_workers()
    if int(num_workers) < 1:
        raise ValueError(f"num_workers must be positive, got {num_workers}")
    return int(num_workers)

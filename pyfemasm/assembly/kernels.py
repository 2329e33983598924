"""pyfemasm.assembly.kernels
Numba kernels for scattering local contributions into global storage.

Kernels return a status code instead of raising so that the Python caller can
turn it into an :class:`~pyfemasm.assembly.errors.AssemblyError`:

    0   success
    1   a global dof is outside [0, n)
    2   a (row, col) pair is not part of the pattern
"""
import numba
import numpy as np

SCATTER_OK = 0
SCATTER_OUT_OF_BOUNDS = 1
SCATTER_NOT_IN_PATTERN = 2


@numba.njit(cache=True)
def find_in_lane(indices, start, end, col):
    """Position of ``col`` in the sorted slice ``indices[start:end]``, or -1."""
    lo = start
    hi = end
    while lo < hi:
        mid = (lo + hi) // 2
        if indices[mid] < col:
            lo = mid + 1
        else:
            hi = mid
    if lo < end and indices[lo] == col:
        return lo
    return -1


@numba.njit(cache=True)
def add_local_matrix_to_csr(offsets, indices, values, dofs, local):
    n_rows = offsets.shape[0] - 1
    n = dofs.shape[0]
    for a in range(n):
        if dofs[a] < 0 or dofs[a] >= n_rows:
            return SCATTER_OUT_OF_BOUNDS
    for a in range(n):
        row = dofs[a]
        start = offsets[row]
        end = offsets[row + 1]
        for b in range(n):
            pos = find_in_lane(indices, start, end, dofs[b])
            if pos < 0:
                return SCATTER_NOT_IN_PATTERN
            values[pos] += local[a, b]
    return SCATTER_OK


@numba.njit(cache=True)
def add_local_vector(out, dofs, local):
    n_out = out.shape[0]
    for a in range(dofs.shape[0]):
        if dofs[a] < 0 or dofs[a] >= n_out:
            return SCATTER_OUT_OF_BOUNDS
    for a in range(dofs.shape[0]):
        out[dofs[a]] += local[a]
    return SCATTER_OK


@numba.njit(cache=True)
def element_pair_keys(dofs, minor_dim):
    """Flattened ``row * minor_dim + col`` keys of all local dof pairs."""
    n = dofs.shape[0]
    keys = np.empty(n * n, dtype=np.int64)
    k = 0
    for a in range(n):
        for b in range(n):
            keys[k] = dofs[a] * minor_dim + dofs[b]
            k += 1
    return keys

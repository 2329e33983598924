"""pyfemasm.assembly.global_matrix
Serial and thread-parallel assembly of global CSR matrices.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from pyfemasm import config
from pyfemasm.assembly.csr import CsrMatrix
from pyfemasm.assembly.errors import AssemblyError
from pyfemasm.assembly.kernels import (SCATTER_NOT_IN_PATTERN, SCATTER_OK,
                                       add_local_matrix_to_csr)
from pyfemasm.assembly.pattern import build_pattern, element_global_dofs, partition_range

logger = logging.getLogger(__name__)


def _local_matrix(element_assembler, eid):
    dofs = element_global_dofs(element_assembler, eid)
    if len(dofs) == 0:
        return dofs, None
    local = np.ascontiguousarray(element_assembler.assemble_element_matrix(eid), dtype=np.float64)
    assert local.shape == (len(dofs), len(dofs)), \
        f"Element {eid} returned a {local.shape} matrix for {len(dofs)} local dofs"
    return dofs, local


def _scatter(pattern, values, eid, dofs, local):
    status = add_local_matrix_to_csr(pattern.major_offsets, pattern.minor_indices, values, dofs, local)
    if status == SCATTER_OK:
        return
    if status == SCATTER_NOT_IN_PATTERN:
        raise AssemblyError(f"Element {eid} touches an entry that is not part of the sparsity pattern.")
    raise AssemblyError(f"Element {eid} references global dofs outside [0, {pattern.major_dim}).")


def _check_storage(values, pattern):
    if not isinstance(values, np.ndarray) or values.ndim != 1 or len(values) != pattern.nnz:
        raise AssemblyError(f"Values storage has shape {np.shape(values)} but the pattern has nnz={pattern.nnz}.")
    if not np.issubdtype(values.dtype, np.floating):
        raise AssemblyError(f"Values storage must have a floating-point dtype, got {values.dtype}.")
    if pattern.major_dim != pattern.minor_dim:
        raise AssemblyError(f"Pattern must be square, got {pattern.major_dim}x{pattern.minor_dim}.")


def _check_dims(pattern, element_assembler):
    n_dofs = element_assembler.num_nodes() * element_assembler.solution_dim
    if pattern.major_dim != n_dofs:
        raise AssemblyError(f"Pattern dimension {pattern.major_dim} does not match {n_dofs} global dofs.")


class CsrAssembler:
    """
    Serial CSR assembly: elements in increasing index order, each local matrix
    added entry by entry into the slot located by binary search in its row.
    """

    def assemble_pattern(self, element_assembler):
        return build_pattern(element_assembler, num_workers=1)

    def assemble_values_into(self, values: np.ndarray, pattern, element_assembler) -> None:
        """
        Overwrite ``values`` with the assembled matrix values.

        Assembly runs in scratch storage; ``values`` is only written once every
        element has been scattered successfully.
        """
        _check_storage(values, pattern)
        _check_dims(pattern, element_assembler)
        t0 = time.perf_counter()
        scratch = np.zeros(pattern.nnz)
        self._assemble(scratch, pattern, element_assembler)
        values[:] = scratch
        if config.profile_assembly():
            logger.info(f"{type(self).__name__}: assembled {element_assembler.num_elements()} elements "
                        f"(nnz={pattern.nnz}) in {time.perf_counter() - t0:.4f}s")

    def _assemble(self, values, pattern, element_assembler):
        for eid in range(element_assembler.num_elements()):
            dofs, local = _local_matrix(element_assembler, eid)
            if local is not None:
                _scatter(pattern, values, eid, dofs, local)

    def assemble_into_csr(self, csr: CsrMatrix, element_assembler) -> None:
        self.assemble_values_into(csr.values, csr.pattern, element_assembler)

    def assemble(self, element_assembler) -> CsrMatrix:
        pattern = self.assemble_pattern(element_assembler)
        values = np.zeros(pattern.nnz)
        self.assemble_values_into(values, pattern, element_assembler)
        return CsrMatrix(pattern, values)


class CsrParAssembler(CsrAssembler):
    """
    Thread-parallel CSR assembly.

    The element range is split into contiguous chunks, one per worker. Workers
    only compute local matrices, kept in worker-local lists; the calling
    thread then scatters them in ascending element order. Floating-point
    results are therefore identical to :class:`CsrAssembler` for any worker
    count.
    """

    def __init__(self, num_workers=None):
        self.num_workers = config.resolve_num_workers(num_workers)

    def __repr__(self):
        return f"CsrParAssembler(num_workers={self.num_workers})"

    def assemble_pattern(self, element_assembler):
        return build_pattern(element_assembler, num_workers=self.num_workers)

    def _assemble(self, values, pattern, element_assembler):
        parts = partition_range(element_assembler.num_elements(), self.num_workers)
        logger.debug(f"Parallel matrix assembly: {element_assembler.num_elements()} elements "
                     f"in {len(parts)} chunks on {self.num_workers} workers.")

        def work(elem_range):
            return [(eid,) + _local_matrix(element_assembler, eid) for eid in elem_range]

        with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
            chunks = list(executor.map(work, parts))

        # chunks are contiguous and returned in submission order
        for chunk in chunks:
            for eid, dofs, local in chunk:
                if local is not None:
                    _scatter(pattern, values, eid, dofs, local)

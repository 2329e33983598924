"""pyfemasm.assembly.load_vector
Serial and thread-parallel assembly of global vectors (loads, residuals).
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from pyfemasm import config
from pyfemasm.assembly.errors import AssemblyError
from pyfemasm.assembly.kernels import SCATTER_OK, add_local_vector
from pyfemasm.assembly.pattern import element_global_dofs, partition_range

__all__ = ["SerialVectorAssembler", "ParVectorAssembler"]

logger = logging.getLogger(__name__)


def _local_vector(element_assembler, eid):
    dofs = element_global_dofs(element_assembler, eid)
    if len(dofs) == 0:
        return dofs, None
    local = np.ascontiguousarray(element_assembler.assemble_element_vector(eid), dtype=np.float64)
    assert local.shape == (len(dofs),), \
        f"Element {eid} returned a {local.shape} vector for {len(dofs)} local dofs"
    return dofs, local


def _scatter(out, eid, dofs, local):
    if add_local_vector(out, dofs, local) != SCATTER_OK:
        raise AssemblyError(f"Element {eid} references global dofs outside [0, {len(out)}).")


class SerialVectorAssembler:

    def assemble_vector_into(self, out: np.ndarray, element_assembler) -> None:
        """Overwrite ``out`` with the assembled vector; ``out`` is untouched on failure."""
        n_dofs = element_assembler.num_nodes() * element_assembler.solution_dim
        if not isinstance(out, np.ndarray) or out.shape != (n_dofs,):
            raise AssemblyError(f"Output vector must have shape ({n_dofs},), got {np.shape(out)}.")
        if not np.issubdtype(out.dtype, np.floating):
            raise AssemblyError(f"Output vector must have a floating-point dtype, got {out.dtype}.")
        t0 = time.perf_counter()
        scratch = np.zeros(n_dofs)
        self._assemble(scratch, element_assembler)
        out[:] = scratch
        if config.profile_assembly():
            logger.info(f"{type(self).__name__}: assembled {element_assembler.num_elements()} elements "
                        f"into {n_dofs} dofs in {time.perf_counter() - t0:.4f}s")

    def _assemble(self, out, element_assembler):
        for eid in range(element_assembler.num_elements()):
            dofs, local = _local_vector(element_assembler, eid)
            if local is not None:
                _scatter(out, eid, dofs, local)

    def assemble_vector(self, element_assembler) -> np.ndarray:
        out = np.zeros(element_assembler.num_nodes() * element_assembler.solution_dim)
        self.assemble_vector_into(out, element_assembler)
        return out


class ParVectorAssembler(SerialVectorAssembler):
    """Local vectors computed by a thread pool, summed in ascending element order."""

    def __init__(self, num_workers=None):
        self.num_workers = config.resolve_num_workers(num_workers)

    def __repr__(self):
        return f"ParVectorAssembler(num_workers={self.num_workers})"

    def _assemble(self, out, element_assembler):
        parts = partition_range(element_assembler.num_elements(), self.num_workers)
        logger.debug(f"Parallel vector assembly: {element_assembler.num_elements()} elements "
                     f"in {len(parts)} chunks on {self.num_workers} workers.")

        def work(elem_range):
            return [(eid,) + _local_vector(element_assembler, eid) for eid in elem_range]

        with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
            chunks = list(executor.map(work, parts))

        for chunk in chunks:
            for eid, dofs, local in chunk:
                if local is not None:
                    _scatter(out, eid, dofs, local)

from .errors import AssemblyError, SparsityPatternFormatError
from .pattern import SparsityPattern, build_pattern
from .csr import CsrMatrix
from .operators import (Operator, EllipticOperator, EllipticContraction, SourceFunction,
                        LaplaceOperator, ConstantSource, FunctionSource)
from .local_assembler import (ElementEllipticAssembler, ElementSourceAssembler, ElementSubsetAssembler,
                              gather_global_to_local, distribute_local_to_global)
from .global_matrix import CsrAssembler, CsrParAssembler
from .load_vector import SerialVectorAssembler, ParVectorAssembler
__all__=['AssemblyError','SparsityPatternFormatError','SparsityPattern','build_pattern','CsrMatrix',
         'Operator','EllipticOperator','EllipticContraction','SourceFunction',
         'LaplaceOperator','ConstantSource','FunctionSource',
         'ElementEllipticAssembler','ElementSourceAssembler','ElementSubsetAssembler',
         'gather_global_to_local','distribute_local_to_global',
         'CsrAssembler','CsrParAssembler','SerialVectorAssembler','ParVectorAssembler']

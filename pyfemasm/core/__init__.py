from .mesh import Mesh
from .topology import Node
__all__=['Mesh','Node']

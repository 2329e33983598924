import numpy as np


class Node:
    def __init__(self, id, x, y, tag=None):
        self.x = x
        self.y = y
        self.id = id
        self.tag = tag

    def __repr__(self):
        return f"Node {self.id}({self.x:.3f}, {self.y:.3f}, tag='{self.tag}')"

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return np.isclose(self.x, other.x) and np.isclose(self.y, other.y)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((self.x, self.y))

    def __getitem__(self, idx):
        if   idx == 0: return self.x
        elif idx == 1: return self.y
        raise IndexError("Node supports indices 0 (x) and 1 (y)")

    def __iter__(self):
        yield self.x
        yield self.y

    def has_tag(self, name: str) -> bool:
        """True if ``name`` is one of the comma-separated tags of the node."""
        if not self.tag:
            return False
        return name in self.tag.split(",")

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence


@dataclass(frozen=True, eq=False)
class Function:
    """Interned identity of one distinct frame name.

    Instances are only created by a FunctionRegistry. Equality goes through
    the integer id handed out at intern time plus the name, so functions
    interned by different registries never compare equal by accident.
    """
    id: int
    name: str

    def __eq__(self, other) -> bool:
        if not isinstance(other, Function):
            return NotImplemented
        return self.id == other.id and self.name == other.name

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Function(id={self.id}, name='{self.name}')"


@dataclass
class FunctionRegistry:
    """Interns frame names for one analysis run."""
    _by_name: Dict[str, Function] = field(default_factory=dict)
    _by_id: List[Function] = field(default_factory=list)

    def intern(self, name: str) -> Function:
        function = self._by_name.get(name)
        if function is None:
            function = Function(id=len(self._by_id), name=name)
            self._by_name[name] = function
            self._by_id.append(function)
        return function

    def get_objects(self, frame_names: Sequence[str], max_depth: Optional[int] = None) -> List[Function]:
        """
        Intern a list of frame names, stopping at max_depth frames.

        Args:
            frame_names: Frame names, innermost frame first
            max_depth: Maximum number of frames to keep (None keeps all)

        Returns:
            List of interned Function objects in the same order
        """
        if max_depth is not None:
            frame_names = frame_names[:max_depth]
        return [self.intern(name) for name in frame_names]

    def get(self, name: str) -> Optional[Function]:
        return self._by_name.get(name)

    def by_id(self, function_id: int) -> Function:
        return self._by_id[function_id]

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Function]:
        return iter(self._by_id)

    def __len__(self) -> int:
        return len(self._by_id)

"""
Foreign-Key Dependency Graph

Built once over the complete descriptor set. Edges run parent -> child,
where the parent is the referenced table. Provides leaf detection, cycle
detection and a children-first order used for deletion planning.

Self-referencing foreign keys (``categories.parent_id -> categories.id``)
are remembered but never become edges, so they can never form a cycle and
never make a table its own child.
"""
from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from ..models import TableDescriptor, unqualified_name
from ..utils.diagnostics import Diagnostic, DiagnosticCode, OperationResult
from ..utils.logging import get_logger

logger = get_logger(__name__)


class DependencyGraph:
    """
    Parent/child adjacency over a set of table descriptors.

    Table lookups are case-insensitive. References to tables outside the
    set are ignored here and reported by validation instead.
    """

    def __init__(self, tables: Sequence[TableDescriptor]):
        self._tables: Dict[str, TableDescriptor] = {}
        for table in tables:
            self._tables[table.key] = table

        self._children: Dict[str, List[str]] = {key: [] for key in self._tables}
        self._parents: Dict[str, List[str]] = {key: [] for key in self._tables}
        self._self_referencing: Set[str] = set()

        for table in self._tables.values():
            for fk in table.foreign_keys:
                parent_key = unqualified_name(fk.referenced_table).lower()
                if parent_key not in self._tables:
                    continue
                if parent_key == table.key:
                    self._self_referencing.add(table.key)
                    continue
                if table.key not in self._children[parent_key]:
                    self._children[parent_key].append(table.key)
                    self._parents[table.key].append(parent_key)

        edge_count = sum(len(children) for children in self._children.values())
        logger.debug(f"Built dependency graph: {len(self._tables)} tables, {edge_count} edges")

    @classmethod
    def build(cls, tables: Sequence[TableDescriptor]) -> "DependencyGraph":
        return cls(tables)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._tables

    def __len__(self) -> int:
        return len(self._tables)

    def get(self, name: str) -> Optional[TableDescriptor]:
        return self._tables.get(unqualified_name(name).lower())

    @property
    def tables(self) -> List[TableDescriptor]:
        return list(self._tables.values())

    def children_of(self, name: str) -> List[str]:
        """Names of tables holding a foreign key to ``name``"""
        return [self._tables[key].name for key in self._children.get(name.lower(), [])]

    def parents_of(self, name: str) -> List[str]:
        """Names of tables ``name`` holds a foreign key to, excluding itself"""
        return [self._tables[key].name for key in self._parents.get(name.lower(), [])]

    def is_self_referencing(self, name: str) -> bool:
        return name.lower() in self._self_referencing

    def is_leaf(self, name: str) -> bool:
        return not self._children.get(name.lower())

    def apply_to(self, tables: Iterable[TableDescriptor]) -> List[TableDescriptor]:
        """Return descriptors with child_tables and is_leaf_table recomputed"""
        return [
            table.evolve(
                child_tables=tuple(self.children_of(table.name)),
                is_leaf_table=self.is_leaf(table.name),
            )
            for table in tables
        ]

    def find_cycles(self) -> List[List[str]]:
        """
        Depth-first search over child -> parent dependencies.

        Each cycle is reported once as a closed path of table names, for
        example ``["orders", "invoices", "orders"]``.
        """
        cycles: List[List[str]] = []
        seen_cycles: Set[frozenset] = set()
        visited: Set[str] = set()

        def visit(key: str, stack: List[str], on_stack: Set[str]) -> None:
            visited.add(key)
            stack.append(key)
            on_stack.add(key)

            for parent in self._parents[key]:
                if parent in on_stack:
                    path = stack[stack.index(parent):] + [parent]
                    signature = frozenset(path)
                    if signature not in seen_cycles:
                        seen_cycles.add(signature)
                        cycles.append([self._tables[k].name for k in path])
                elif parent not in visited:
                    visit(parent, stack, on_stack)

            stack.pop()
            on_stack.discard(key)

        for key in self._tables:
            if key not in visited:
                visit(key, [], set())

        return cycles

    def has_cycle(self) -> bool:
        return bool(self.find_cycles())

    def children_first_order(
        self,
        include: Optional[Callable[[TableDescriptor], bool]] = None,
    ) -> OperationResult[List[TableDescriptor]]:
        """
        Order tables so every child precedes its parents.

        Roots are taken in ascending child count, ties in declaration order.
        A table revisited while still on the recursion path closes a cycle;
        it is reported as a warning and not expanded again, so the acyclic
        part of the order is still returned.

        Args:
            include: Optional filter. The whole graph is traversed so that
                transitive ordering holds, but only matching tables are
                emitted.
        """
        result: List[TableDescriptor] = []
        diagnostics: List[Diagnostic] = []
        visited: Set[str] = set()
        visiting: Set[str] = set()

        def visit(key: str) -> None:
            if key in visited:
                return
            if key in visiting:
                name = self._tables[key].name
                logger.warning(f"Circular dependency detected involving {name}")
                diagnostics.append(Diagnostic.warning(
                    DiagnosticCode.GENERATION_CYCLE,
                    f"Circular dependency detected involving {name}; ordering is best-effort",
                ))
                return

            visiting.add(key)
            for child in self._children[key]:
                visit(child)
            visiting.discard(key)
            visited.add(key)

            table = self._tables[key]
            if include is None or include(table):
                result.append(table)

        for key in sorted(self._tables, key=lambda k: len(self._children[k])):
            visit(key)

        if diagnostics:
            return OperationResult.with_warnings(result, diagnostics)
        return OperationResult.success(result)

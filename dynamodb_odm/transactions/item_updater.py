"""
Update expression builder for field-level mutations.

``ItemUpdater`` collects SET, ADD, DELETE and REMOVE primitives and renders
them into one UpdateExpression with name and value placeholders:

    SET #_n0 = :_s0, #_n1 = :_s1 ADD #_a0 :_a0 DELETE #_d0 :_d0 REMOVE #_r0

Attribute names always go through placeholders so reserved words such as
``name`` or ``count`` need no special handling.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Tuple

from ..codec import sanitize_value


def _as_set(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return set(value)
    if isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping)):
        return set(value)
    return {value}


class ItemUpdater:
    """Accumulates field mutations for a single UpdateItem."""

    def __init__(self):
        self.assignments: Dict[str, Any] = {}
        self.additions: Dict[str, Any] = {}
        self.deletions: Dict[str, Any] = {}
        self.removals: List[str] = []

    def is_empty(self) -> bool:
        return not (self.assignments or self.additions or self.deletions or self.removals)

    def attribute_names(self) -> List[str]:
        names = list(self.assignments) + list(self.additions) + list(self.deletions) + self.removals
        return list(dict.fromkeys(names))

    def set(self, **values: Any) -> None:
        """Assign attribute values."""
        self.assignments.update(values)

    def add(self, **values: Any) -> None:
        """Increment numbers or add elements to sets.

        Lists and other non-set iterables are added as sets.
        """
        for name, value in values.items():
            if not isinstance(value, (set, frozenset)) and isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping)):
                value = set(value)
            self.additions[name] = value

    def delete(self, *names: str, **values: Any) -> None:
        """Remove elements from sets, or remove whole attributes when given names.

        ``delete(tags={'a'})`` removes one element from a set and ``delete('tags')``
        removes the attribute.
        """
        for name in names:
            self.remove(name)
        for name, value in values.items():
            self.deletions[name] = _as_set(value)

    def remove(self, *names: str) -> None:
        """Remove attributes entirely."""
        for name in names:
            self.removals.append(str(name))

    def build(self, set_values: Dict[str, Any]) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Render the update expression.

        Args:
            set_values: Dumped values for the SET clause

        Returns:
            Tuple of (UpdateExpression, ExpressionAttributeNames, ExpressionAttributeValues)
        """
        clauses = []
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}

        if set_values:
            statements = []
            for i, (name, value) in enumerate(set_values.items()):
                statements.append(f"#_n{i} = :_s{i}")
                names[f"#_n{i}"] = name
                values[f":_s{i}"] = value
            clauses.append(f"SET {', '.join(statements)}")

        if self.additions:
            statements = []
            for i, (name, value) in enumerate(self.additions.items()):
                statements.append(f"#_a{i} :_a{i}")
                names[f"#_a{i}"] = name
                values[f":_a{i}"] = sanitize_value(value)
            clauses.append(f"ADD {', '.join(statements)}")

        if self.deletions:
            statements = []
            for i, (name, value) in enumerate(self.deletions.items()):
                statements.append(f"#_d{i} :_d{i}")
                names[f"#_d{i}"] = name
                values[f":_d{i}"] = sanitize_value(value)
            clauses.append(f"DELETE {', '.join(statements)}")

        if self.removals:
            statements = []
            for i, name in enumerate(self.removals):
                statements.append(f"#_r{i}")
                names[f"#_r{i}"] = name
            clauses.append(f"REMOVE {', '.join(statements)}")

        return " ".join(clauses), names, values

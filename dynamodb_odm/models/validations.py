"""
Document validation.

Two kinds of checks run when a document is validated:

- presence checks for fields declared with ``required=True``
- instance methods marked with ``@validator``, which report problems through
  ``self.errors.add(attribute, message)``

Example:
    class User(Document):
        email = Field(required=True)
        age = Field('integer')

        @validator
        def age_is_positive(self):
            if self.age is not None and self.age < 0:
                self.errors.add('age', 'must be positive')
"""

from typing import Callable, Dict, List


def validator(method: Callable) -> Callable:
    """Mark an instance method as a validation check."""
    method._is_validator = True
    return method


def collect_validators(cls) -> List[Callable]:
    """Validator methods of ``cls`` in MRO order, parents first, overrides replacing in place."""
    methods: Dict[str, Callable] = {}
    for klass in reversed(cls.__mro__):
        for name, value in vars(klass).items():
            if getattr(value, '_is_validator', False):
                methods[name] = value
            elif name in methods:
                del methods[name]
    return list(methods.values())


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (set, frozenset, list, tuple, dict)):
        return not value
    return False


class Errors:
    """Validation messages collected per attribute."""

    def __init__(self):
        self._messages: Dict[str, List[str]] = {}

    def add(self, attribute: str, message: str) -> None:
        self._messages.setdefault(attribute, []).append(message)

    def __getitem__(self, attribute: str) -> List[str]:
        return list(self._messages.get(attribute, []))

    def __contains__(self, attribute: str) -> bool:
        return attribute in self._messages

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._messages.values())

    def __bool__(self) -> bool:
        return bool(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def full_messages(self) -> List[str]:
        """Messages prefixed with a readable attribute name, e.g. "Email can't be blank"."""
        result = []
        for attribute, messages in self._messages.items():
            label = attribute.replace('_', ' ').capitalize()
            result.extend(f"{label} {message}" for message in messages)
        return result

    def to_dict(self) -> Dict[str, List[str]]:
        return {attribute: list(messages) for attribute, messages in self._messages.items()}

    def __repr__(self) -> str:
        return f"Errors({self._messages!r})"


def run_validations(document) -> None:
    """Fill ``document.errors`` from presence checks and validator methods."""
    for name, field in document.fields().items():
        if field.required and _is_blank(document.read_attribute(name)):
            document.errors.add(name, "can't be blank")

    for method in type(document)._validators:
        method(document)

"""Object identity."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True, order=True)
class ObjectKey:
    """Namespace-qualified name identifying a RuleSet or a Target."""

    namespace: str
    name: str

    @classmethod
    def parse(cls, value: str) -> ObjectKey:
        """Parse ``namespace/name``; a bare name lands in the ``default`` namespace."""

        namespace, sep, name = value.strip().partition("/")
        if not sep:
            namespace, name = "default", namespace
        if not namespace or not name or "/" in name:
            raise ValueError(f"Invalid object key: {value!r}")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

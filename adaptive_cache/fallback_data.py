"""
Static Fallback Dataset

The last-resort substitute values served when an upstream lookup exhausts
its retries. The surrounding application fills the dataset; the caching
layer only looks values up.

Lookup order for a key such as "search_drupal_functions:3f2a...":
    1. the exact key
    2. the operation part before the first ':' ("search_drupal_functions")
    3. the dataset default
"""

import copy
from collections.abc import Mapping
from typing import Any


class StaticFallbackDataset:
    """
    Deterministic substitute payloads keyed like real lookups.

    Values are deep-copied on the way out so callers can never mutate the
    dataset.

    Usage:
        dataset = StaticFallbackDataset(
            operations={"search_drupal_functions": [{"name": "node_load"}]},
            default=[],
        )
        dataset.lookup("search_drupal_functions:abc123")  # [{"name": "node_load"}]
    """

    def __init__(
        self,
        entries: Mapping[str, Any] | None = None,
        operations: Mapping[str, Any] | None = None,
        default: Any = None,
    ):
        self._entries: dict[str, Any] = dict(entries or {})
        self._operations: dict[str, Any] = dict(operations or {})
        self._default = default

    def register(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def register_operation(self, operation: str, value: Any) -> None:
        self._operations[operation] = value

    def lookup(self, key: str) -> Any:
        if key in self._entries:
            return copy.deepcopy(self._entries[key])

        operation = key.split(":", 1)[0]
        if operation in self._operations:
            return copy.deepcopy(self._operations[operation])

        return copy.deepcopy(self._default)

    def __contains__(self, key: str) -> bool:
        return key in self._entries or key.split(":", 1)[0] in self._operations

    def __len__(self) -> int:
        return len(self._entries) + len(self._operations)

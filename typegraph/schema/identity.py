"""
Per-pass symbol resolution for typegraph.

Every Type, Field and Param gets a temporary negative identity the first
time its symbol is mentioned, whether as a declaration or as a reference
(an ``implements`` list, a field ``type``). The store maps these temporary
identities to permanent ones when the pass is transacted.

Invariants:
    - Identities are negative, distinct and strictly decreasing in
      allocation order (-1, -2, ...)
    - The same scoped key always yields the same identity within a context
    - A context belongs to exactly one compilation pass and is never reset;
      a new pass creates a new context

How to change safely:
    - Keep scoped keys as tuples: ("A",) for type A, ("A", "f") for its
      field f, ("A", "f", "p") for param p of that field
    - Never share a context between concurrent passes
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .symbols import Symbol, symbol_name

logger = logging.getLogger(__name__)

ScopedKey = tuple[str, ...]


class CompilationContext:
    """Identity table and policy for one compilation pass.

    Thread-safety:
        Not thread-safe; each pass owns its own context, so concurrent
        passes never interfere.

    Attributes:
        strict: Reject malformed declaration shapes instead of skipping them

    Example:
        >>> ctx = CompilationContext()
        >>> ctx.resolve("A")
        -1
        >>> ctx.resolve("A", "f")
        -2
        >>> ctx.resolve(Symbol("A"))
        -1
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict
        self._counter = 0
        self._ids: dict[ScopedKey, int] = {}
        self._declared: set[int] = set()

    def _next_id(self) -> int:
        self._counter -= 1
        return self._counter

    def resolve(self, symbol: Symbol | str, *scope: Symbol | str) -> int:
        """Get the identity for a symbol, allocating it on first use.

        Args:
            symbol: The symbol (or its name) to resolve
            *scope: Owning type, then owning field, for Field/Param symbols

        Returns:
            Negative integer identity, stable for the rest of the pass
        """
        key = tuple(symbol_name(s) for s in scope) + (symbol_name(symbol),)
        identity = self._ids.get(key)
        if identity is None:
            identity = self._next_id()
            self._ids[key] = identity
            logger.debug(f"Allocated identity {identity} for {'.'.join(key)}")
        return identity

    def declare(self, symbol: Symbol | str, *scope: Symbol | str) -> int:
        """Resolve a symbol and record that it backs a real entity."""
        identity = self.resolve(symbol, *scope)
        self._declared.add(identity)
        return identity

    def is_declared(self, identity: int) -> bool:
        return identity in self._declared

    def undeclared(self) -> dict[ScopedKey, int]:
        """Scoped keys that were only ever referenced, never declared."""
        return {
            key: identity
            for key, identity in self._ids.items()
            if identity not in self._declared
        }

    def items(self) -> Iterator[tuple[ScopedKey, int]]:
        yield from self._ids.items()

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, key: object) -> bool:
        return key in self._ids

"""Pure domain logic: filter parsing and predicate building (no I/O)."""

"""Pure, synchronous analysis engines. No I/O, no side effects."""

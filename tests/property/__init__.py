# tests/property/__init__.py
"""Property-based tests for pagepulse.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. Delivery ordering and
engagement accounting are exactly the kind of stateful behaviour where a
hand-picked example misses the interleaving that breaks it.

Test categories:
- telemetry/: Delivery order and queue length under arbitrary
  append/flush/failure interleavings
- session/: Monotonic engagement accumulators
"""

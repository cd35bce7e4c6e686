"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - Failed operations leave no trace
2. curve_properties.py - Trading invariant, continuity and fee linearity
3. solvency.py - Solvency requirement and idle liquidity bounds
4. determinism.py - Reproducible behavior

These tests use hypothesis for property-based testing.
"""

"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the vault system.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. solvency.py - No user operation leaves its account below HF 1.0
2. conservation.py - Custody, accounting and peg supply always agree
3. atomicity.py - Failed operations change nothing
4. close_factor.py - Liquidations are bounded and strictly improve health
5. round_trip.py - Valuation never creates value
6. deployment.py - One vault per collateral asset
7. idempotency.py - Duplicate execution and repeated operations
8. determinism.py - Reproducible intent ids and state

These tests use hypothesis for property-based testing.
"""

"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending pool.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing pool operations
2. conservation.py - Double-entry balances, holdings match liquidity
3. idempotency.py - Accrual idempotence and index monotonicity
4. scaled_amounts.py - Rounding direction of index scaling

These tests use hypothesis for property-based testing.
"""

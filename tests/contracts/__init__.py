"""Contract tests for quotebook stores.

These tests verify that every QuoteStore implementation honors the same
filter, ordering and category contract, so callers cannot tell which
backend is active from the results.
"""

"""
Audit Comparison Tests Package
==============================
Tests for the tokenizer, prompt differ, annotation matcher, analysis
result models and the audit API blueprint.

Run all tests: python3 -m pytest tests/compare/ -v
Run specific: python3 -m pytest tests/compare/test_differ.py -v
"""

"""
PromptAuditReview Test Suite
============================
Run all tests: python3 -m pytest tests/ -v
"""

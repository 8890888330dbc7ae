"""
Test suite for the clinic reports backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_reports_service.py -v
"""

"""
tfcheck test suite.

Test Organization:
    - tests/conftest.py: Shared fixtures (environment, sample project, fake tools)
    - tests/unit/test_*.py: Unit tests for individual modules
"""

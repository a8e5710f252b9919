"""Masjid Irshad Push Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - push/: base64url, VAPID, encryption, subscription store, delivery cycle
  - core/: config, models, logging
  - security/: rate limiter
- integration/: FastAPI endpoint tests against an isolated database

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/push/

    # With coverage
    pytest --cov=irshad --cov-report=term-missing
"""

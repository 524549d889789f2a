"""Push Reminders Test Suite

This package contains all tests for the scheduled push reminder job.

Test organization:
- unit/: Unit tests for individual modules
  - mobile/queue/: Window matching, token aggregation, batching
  - mobile/push/: Failure classification, reconciliation, FCM and Firestore adapters
  - mobile/: Models, config and full job runs against in-memory fakes
  - test_cli.py, test_logging_config.py: Entry point and logging setup

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/mobile/push/

    # Verbose
    pytest -v
"""

"""
Schedule Assistant Tests

Running Tests:
    # Install with test extras
    pip install -e ".[test]"

    # Run all tests
    pytest -v

    # Run one module
    pytest tests/unit/test_scheduling_engine.py -v

No PostgreSQL or Redis is needed: the SQL store is tested against an
in-memory SQLite database (aiosqlite) and conversation state uses the
store's in-memory fallback.

Test Coverage:
    - Intent classification and dialogue-step precedence
    - Conversation state records and the Redis state store
    - Schedule store contract (in-memory and SQL)
    - Dialogue flow per intent
    - Engine turns end to end, including store failures
    - Reply templates
    - LINE signature checks and the reply client
    - Webhook and health endpoints
"""

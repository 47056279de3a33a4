"""
Test suite for ddlsync.

- Unit tests run against an in-memory fake database
- Integration tests need a MySQL server (set DDLSYNC_TEST_DATABASE_URL)
"""

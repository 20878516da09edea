"""
StudyTrack Test Suite
=====================

Test Organization
-----------------
- tests/unit/          : Services against the in-memory store (no external dependencies)
- tests/integration/   : SQL store on sqlite+aiosqlite

Testing Philosophy
------------------
- Unit tests: fast, isolated, deterministic clock
- Integration tests: real SQL round trips through DatabaseService
- Follow AAA pattern: Arrange, Act, Assert
"""

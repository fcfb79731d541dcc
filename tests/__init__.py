"""CHRONICLE test suite.

Folder taxonomy
- unit/         : Isolated, fast checks of a single module/class/function.
- integration/  : Real interactions with a database (SQLite files, Postgres).
- functional/   : User-visible flows through the ``chronicle`` CLI.
- contract/     : Shared behavior enforced across event store implementations.
- fixtures/     : Shared pytest fixtures (no tests here).

General guidance
- Keep unit fast and deterministic; prefer fakes over mocks at boundaries.
- Contract tests parametrize implementations to ensure consistent behavior.
- Markers: unit, integration, functional, contract, slow
"""

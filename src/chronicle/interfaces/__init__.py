"""Interfaces (application boundary) for CHRONICLE.

Defines framework-free contracts: the event store ports, the serializer port,
and the small DTOs shared by adapters and entrypoints.

Dependency rule: this package is independent, do not import from any other
`chronicle.*` modules. It may be imported by `chronicle.adapters` and
`chronicle.entrypoints`.
"""

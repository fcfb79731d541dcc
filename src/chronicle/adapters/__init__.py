"""Adapters (infrastructure) for CHRONICLE.

Provide concrete implementations of the ports in `chronicle.interfaces`:
SQLAlchemy and in-memory event stores, identifier codecs, serializers, plus
database wiring (engines, metadata, migrations).

Dependency rule: may import `chronicle.interfaces`; the interfaces must not
import this package.
"""

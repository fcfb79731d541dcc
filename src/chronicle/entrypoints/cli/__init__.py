"""The ``chronicle`` command-line interface."""

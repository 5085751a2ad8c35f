"""Progress reporting, output helpers and an end-to-end command harness for container tooling."""

__version__ = "0.1.0"
"""hubshell: single-operator TCP control point."""

__version__ = "0.1.0"

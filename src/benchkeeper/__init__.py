"""benchkeeper: benchmark orchestration across interpreter modes, branches and commits."""

__version__ = "0.1.0"

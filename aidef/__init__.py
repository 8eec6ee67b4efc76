"""AIDef: compile nginx-like spec files into a tree of generated code."""

__version__ = "0.1.0"

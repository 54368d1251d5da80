"""covtree — hierarchical test coverage explorer."""

__version__ = "0.1.0"

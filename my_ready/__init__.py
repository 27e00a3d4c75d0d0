"""my-ready: MySQL upgrade-compatibility monitor and NO PAD collation scanner."""

__version__ = "0.1.0"

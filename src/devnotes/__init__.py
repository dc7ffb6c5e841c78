"""DevNotes — DevOps assistant with remote, in-process, and static answers."""

__version__ = "0.3.0"

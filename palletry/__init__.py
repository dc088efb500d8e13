"""In-memory runtime modules with origins, balances, events and small state machines."""

__version__ = "0.1.0"
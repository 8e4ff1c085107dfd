"""Adapters binding the core to concrete documents and chat feeds."""

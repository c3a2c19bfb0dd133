"""Persistence layer: ledger, question store, message and event sinks."""

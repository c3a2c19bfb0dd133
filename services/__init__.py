"""Escrow workflow services: state machine, settlement sweep, notifications."""

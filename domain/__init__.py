"""Pure domain model for the paid-question escrow workflow."""

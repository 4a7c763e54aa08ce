"""Service layer for Calming Notes."""

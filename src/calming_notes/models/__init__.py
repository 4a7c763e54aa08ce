"""Data models for Calming Notes."""

"""Database layer for the back office."""

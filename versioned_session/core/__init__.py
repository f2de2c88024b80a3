"""Configuration, types, errors and interfaces shared by the session."""

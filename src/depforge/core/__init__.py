"""Core dependency model and resolution engine."""

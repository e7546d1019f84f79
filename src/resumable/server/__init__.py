"""Server module - Artifact storage, upload validation, and range reads."""

"""Objlens core: data models, byte sources, errors and the format dispatcher."""

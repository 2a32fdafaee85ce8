"""Page editor document core: page schema, responsive overrides, patches and undo/redo."""

__version__ = "0.1.0"

"""Core domain types: models, analysis, planning and workspaces."""

"""User interfaces for texsandbox."""

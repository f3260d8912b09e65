"""Adapters bridging the core pipeline with external tooling."""

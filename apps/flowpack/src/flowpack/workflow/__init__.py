"""Workflow definition model, builder, connector discovery and export pipeline."""

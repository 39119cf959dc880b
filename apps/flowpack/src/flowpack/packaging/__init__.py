"""Solution and single-flow package serializers."""

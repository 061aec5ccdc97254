"""Car rental availability search service."""

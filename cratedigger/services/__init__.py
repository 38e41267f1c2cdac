"""Import pipeline stages."""

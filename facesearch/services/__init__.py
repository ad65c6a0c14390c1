"""Search pipeline services."""

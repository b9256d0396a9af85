"""Optional external identity providers."""

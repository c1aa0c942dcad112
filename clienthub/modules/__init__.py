"""Static module registry (immutable configuration)."""

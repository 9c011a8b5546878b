"""HTTP adapter over the cap table services."""

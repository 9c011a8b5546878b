"""Domain services for the cap table engine."""

"""HTTP routes for the profile service."""

"""Route modules for the demo API."""

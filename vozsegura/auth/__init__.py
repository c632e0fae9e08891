"""Authentication — login with lockout, and password recovery."""

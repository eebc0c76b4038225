"""Password reset workflow: one-time hashed tokens delivered by email."""

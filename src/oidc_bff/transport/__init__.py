"""HTTP surface of the session broker."""

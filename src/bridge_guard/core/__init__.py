"""Core primitives: settings, errors, signatures and proof-of-work."""

"""Guard services for authentication, authorization and throttling."""

"""Business services.  Each takes its providers through the constructor."""

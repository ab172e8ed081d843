"""Chat transports for the supported backends."""

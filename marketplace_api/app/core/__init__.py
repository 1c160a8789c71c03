"""Core infrastructure: settings, logging, MongoDB, security and errors."""

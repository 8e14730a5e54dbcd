"""Version information."""

VERSION = "0.3.0"
SCHEMA_VERSION = 1

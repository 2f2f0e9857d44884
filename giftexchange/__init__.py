"""Anonymous gift exchange with custody-account redistribution."""

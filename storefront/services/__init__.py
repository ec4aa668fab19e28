"""Domain services and provider clients."""

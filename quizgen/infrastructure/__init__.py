"""Infrastructure helpers shared by the provider clients."""

"""Service adapters: cache, metadata provider, description files, images."""

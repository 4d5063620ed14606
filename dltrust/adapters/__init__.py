"""I/O adapters: subprocess and HTTP."""

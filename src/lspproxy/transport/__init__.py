"""Transport layer for the LSP proxy."""

"""HTTP backend for sparseba."""

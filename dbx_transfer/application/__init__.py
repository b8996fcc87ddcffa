"""Token lifecycle and transfer operations."""

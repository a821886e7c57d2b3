"""Core engine components: auction logic, registry and storage."""

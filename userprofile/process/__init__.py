"""Multi-step operations that span more than one backing service."""

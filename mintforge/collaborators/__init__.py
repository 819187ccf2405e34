"""External collaborators: generation, content storage and the ledger."""

"""Auto-parts inventory, invoicing and payment ledger served over FastAPI."""

"""File adapters: reading bank exports into raw tables and writing canonical ledger files."""

"""Per-structure field tables for legacy, extended and vendor capabilities."""

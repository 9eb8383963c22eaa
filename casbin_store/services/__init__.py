"""Service layer: engine-facing adapter operations and CSV import/export."""

"""Trip conductor: draft wizard, plan generation and confirmed AI edits."""

"""Certificate lifecycle: storage, verification log and the coordinators."""

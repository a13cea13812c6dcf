"""Pure domain layer: clock, lifecycle workflow, coverage, DTOs, validation."""

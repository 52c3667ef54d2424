"""Entities, DTOs, filters and constants. Import from the submodules directly."""

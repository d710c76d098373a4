from santavibe.services.assignment import (
    DrawError,
    DrawValidationError,
    GenerationExhaustedError,
    generate_assignment,
)
from santavibe.services.exclusions import ExclusionIndex
from santavibe.services.feasibility import ValidationResult, find_violations, split_into_cycles, validate_feasibility

__all__ = [
    "DrawError",
    "DrawValidationError",
    "GenerationExhaustedError",
    "generate_assignment",
    "ExclusionIndex",
    "ValidationResult",
    "find_violations",
    "split_into_cycles",
    "validate_feasibility",
]

class MealOptimizationError(Exception):
    """Base class for errors raised by the meal optimizer."""
    pass

class InvalidInput(MealOptimizationError, ValueError):
    """Exception raised for missing or malformed ingredients and targets."""
    pass

class SolverError(MealOptimizationError):
    """Exception raised when the linear solve fails or returns an unusable result."""
    pass

class AugmentationExhausted(SolverError):
    """Exception raised when the solve is still infeasible after every augmentation round."""
    pass

class SkippedIngredientWarning(UserWarning):
    """Warning emitted when an ingredient is dropped during conversion."""
    pass

"""
Custom exceptions for the star schema ETL library.
"""


class ETLError(Exception):
    """Base exception for star schema ETL library."""

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class SCDValidationError(ETLError):
    """Exception raised when source entity validation fails."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, "SCD_VALIDATION_ERROR")
        self.validation_errors = validation_errors or []


class SCDProcessingError(ETLError):
    """Exception raised when dimension processing fails."""

    def __init__(self, message: str, processing_step: str = None):
        super().__init__(message, "SCD_PROCESSING_ERROR")
        self.processing_step = processing_step


class InvariantViolation(ETLError):
    """Raised when a business key has zero or several current versions where exactly one is required."""

    def __init__(self, message: str, dimension: str = None, business_key=None):
        super().__init__(message, "INVARIANT_VIOLATION")
        self.dimension = dimension
        self.business_key = business_key


class ResolutionError(ETLError):
    """Raised in strict mode when fact lines reference dimensions without a matching version."""

    def __init__(self, message: str, failures: list = None):
        super().__init__(message, "RESOLUTION_ERROR")
        self.failures = failures or []


class SourceUnavailable(ETLError):
    """Raised when a source feed cannot be read."""

    def __init__(self, message: str, source_name: str = None):
        super().__init__(message, "SOURCE_UNAVAILABLE")
        self.source_name = source_name


class ConstraintViolation(ETLError):
    """Raised when a uniqueness or foreign-key rule would be broken at commit."""

    def __init__(self, message: str, violations: list = None):
        super().__init__(message, "CONSTRAINT_VIOLATION")
        self.violations = violations or []


class FactLoadError(ETLError):
    """Exception raised when fact loading fails."""

    def __init__(self, message: str, fact_name: str = None):
        super().__init__(message, "FACT_LOAD_ERROR")
        self.fact_name = fact_name


class ConfigurationError(ETLError):
    """Exception raised when configuration is invalid."""

    def __init__(self, message: str, config_field: str = None):
        super().__init__(message, "CONFIGURATION_ERROR")
        self.config_field = config_field

class PageCompareError(RuntimeError):
    """Base class for page comparison failures."""


class AcquisitionError(PageCompareError):
    """Raised when a page snapshot or screenshot cannot be acquired."""


class ConfigurationError(PageCompareError):
    """Raised when required comparison inputs are missing or invalid."""

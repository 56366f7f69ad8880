"""Exception classes for the quote pricing engine"""

from enum import Enum
from typing import Any, Dict, Optional


class PricingErrorCategory(str, Enum):
    """Error category codes"""
    CONTRACT = "CONTRACT"
    CONFIG = "CONFIG"
    VALIDATION = "VAL"
    UNKNOWN = "UNKNOWN"


class PricingError(Exception):
    """
    Base exception for pricing engine errors.

    Data-shape problems in line items never raise; they degrade to zero values
    and show up as warnings on the result. Anything raised from this hierarchy
    is a caller bug or a deployment problem.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details
        self.category = self._determine_category(code)

    def _determine_category(self, code: Optional[str]) -> PricingErrorCategory:
        """Determine error category from code"""
        if not code:
            return PricingErrorCategory.UNKNOWN

        if code.startswith("CONTRACT"):
            return PricingErrorCategory.CONTRACT
        if code.startswith("CONFIG"):
            return PricingErrorCategory.CONFIG
        if code.startswith("VAL"):
            return PricingErrorCategory.VALIDATION

        return PricingErrorCategory.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        return {
            "name": self.__class__.__name__,
            "message": str(self),
            "code": self.code,
            "category": self.category.value,
            "details": self.details,
        }

    def has_code(self, code: str) -> bool:
        """Check if error has a specific code"""
        return self.code == code

    def get_description(self) -> str:
        """Get human-readable error description"""
        if self.code:
            return f"[{self.code}] {self}"
        return str(self)


class ContractError(PricingError):
    """Caller violated an engine contract (wrong container types, missing line list)"""

    def __init__(
        self,
        message: str,
        code: str = "CONTRACT01",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class ConfigError(PricingError):
    """Configuration error"""

    def __init__(
        self,
        message: str,
        code: str = "CONFIG01",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)

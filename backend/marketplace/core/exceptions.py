"""
Marketplace Exception Hierarchy

Structured exception classes for the checkout pipeline. All exceptions carry
a code, message and details so they can be logged and serialized the same way.

Exception Hierarchy:
    MarketplaceError
    ├── ValidationError
    ├── AuthenticationError
    ├── PermissionDeniedError
    │   ├── SelfPurchaseError
    │   └── CartLimitError
    ├── NotFoundError
    ├── StockConflictError
    └── OrderCommitError

Drift between preview and commit is not an exception: the committer reports it
as a normal result so the client can re-confirm.
"""
from typing import Optional, Dict, Any, List


class MarketplaceError(Exception):
    """
    Base exception for all marketplace errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        status_code: HTTP status used when the error reaches the API boundary
    """

    default_code: str = "MARKETPLACE_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(MarketplaceError):
    """Malformed request data, rejected before any store access."""
    default_code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(MarketplaceError):
    """No usable identity on the request."""
    default_code = "NOT_AUTHENTICATED"
    status_code = 401


class PermissionDeniedError(MarketplaceError):
    """Authenticated, but not allowed to perform the action."""
    default_code = "FORBIDDEN"
    status_code = 403


class SelfPurchaseError(PermissionDeniedError):
    """A checkout batch contains a product sold by the buyer."""
    default_code = "SELF_PURCHASE"

    def __init__(self, message: str = "You can't buy your own products", product_ids: Optional[List[int]] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["product_ids"] = product_ids or []
        super().__init__(message, details=details, **kwargs)


class CartLimitError(PermissionDeniedError):
    """Cart already holds the maximum number of distinct items."""
    default_code = "CART_LIMIT_REACHED"


class NotFoundError(MarketplaceError):
    default_code = "NOT_FOUND"
    status_code = 404


class StockConflictError(MarketplaceError):
    """The conditional stock decrement matched no row."""
    default_code = "STOCK_CONFLICT"
    status_code = 409

    def __init__(
        self,
        message: str,
        product_id: Optional[int] = None,
        requested_qty: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "product_id": product_id,
            "requested_qty": requested_qty,
        })
        super().__init__(message, details=details, **kwargs)


class OrderCommitError(MarketplaceError):
    """
    A seller group failed after the drift gate passed.

    Orders committed for earlier seller groups in the same request are kept;
    their ids are reported so support can reconcile by hand.
    """
    default_code = "ORDER_COMMIT_FAILED"
    status_code = 500

    def __init__(
        self,
        message: str,
        committed_order_ids: Optional[List[int]] = None,
        failed_seller_id: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "committed_order_ids": committed_order_ids or [],
            "failed_seller_id": failed_seller_id,
        })
        super().__init__(message, details=details, **kwargs)

    @property
    def is_partial(self) -> bool:
        return bool(self.details.get("committed_order_ids"))

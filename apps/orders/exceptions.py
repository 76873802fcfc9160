class OrderRejected(Exception):
    """Business-rule or request-shape rejection; nothing has been written."""

    DELIVERY_ZONE = "delivery_zone"
    MINIMUM_ORDER = "minimum_order"
    SECURITY_CHECK = "security_check"
    INVALID_REQUEST = "invalid_request"

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class OrderNotFound(Exception):
    pass


class OrderNumberCollision(Exception):
    """Every generated order number collided; the client may simply retry."""

from .factory import create_payment_http_client
from .transport import X402HttpTransport

__all__ = ["X402HttpTransport", "create_payment_http_client"]

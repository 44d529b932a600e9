from .wallet import WalletAuthorizer

__all__ = ["WalletAuthorizer"]

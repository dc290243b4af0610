from connector.auth.oauth_state import MintedState, VerifiedState, mint_state, verify_state

__all__ = ["MintedState", "VerifiedState", "mint_state", "verify_state"]

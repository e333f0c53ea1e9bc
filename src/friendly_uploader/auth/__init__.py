"""OAuth2 authorization code flow and token storage."""

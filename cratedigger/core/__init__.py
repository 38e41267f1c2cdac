"""Collaborator clients: Spotify catalog, token issuance and browser sessions."""

from .spotify_client import SpotifyCatalogClient
from .spotify_token import BearerCredential, SpotifyTokenIssuer, TokenIssuer

__all__ = [
    "BearerCredential",
    "SpotifyCatalogClient",
    "SpotifyTokenIssuer",
    "TokenIssuer",
]

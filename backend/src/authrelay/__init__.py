"""Auth Relay: OAuth authorization code to Firebase session credential relay."""

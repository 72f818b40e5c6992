"""CORS configuration."""

ALLOWED_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]

ALLOWED_HEADERS = ["Content-Type", "Accept"]

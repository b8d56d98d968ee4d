"""
auth — User authentication module.

Provides:
  • Session token creation & verification (HMAC-signed)
  • Password hashing (bcrypt)
  • Hashed, single-use email-verification / password-reset tokens
  • Signup / login / verify / reset flows and their API routes
  • ``get_current_user`` / ``require_verified_user`` FastAPI dependencies
"""

"""
notifications — outbound email.

Provides:
  • ``NotificationDispatcher`` interface + ``DispatchError``
  • ``SmtpDispatcher`` (SMTP, run in a worker thread)
  • HTML bodies for verification and password-reset emails
"""

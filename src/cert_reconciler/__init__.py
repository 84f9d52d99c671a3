"""
cert_reconciler — keeps stored TLS credentials in line with declared certificates.

For every declared certificate request it checks the stored certificate and
private key, and issues a replacement through the request's issuer whenever
the stored credential is missing, corrupt, or covers the wrong domains.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"

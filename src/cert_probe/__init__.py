"""
cert_probe — TLS certificate acquisition and DER decoding.

Captures a server's leaf certificate at the moment its TLS handshake
completes, or decodes an uploaded PEM/DER file, and normalizes either
into an immutable CertificateRecord for display or storage.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"

"""
ocsp_stapler — keeps OCSP staple files fresh for certbot-managed certificates.

Checks every certbot lineage (or just the one a deploy hook renewed),
fetches and verifies a new OCSP response when the cached one is past half
of its validity window, installs it atomically, and reloads the webserver
when anything changed.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"

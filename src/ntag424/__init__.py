"""NTAG424 DNA SDM tooling."""

import platform
from typing import Dict

__version__ = "1.0.0"


def get_version_info() -> Dict[str, str]:
    """Package and runtime version information."""
    import cryptography

    return {
        "version": __version__,
        "python": platform.python_version(),
        "cryptography": cryptography.__version__,
        "supported_methods": "ntag424Official, hkdf, pbkdf2, simpleHash",
    }

"""
Configuration module for autopass.

Centralizes configuration with environment variable support and
validation.
"""

import os
from typing import Dict

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("AUTOPASS_ENV", "dev")  # dev|stage|prod

# Verification backend: auto queries the native endpoint once
VERIFIER_MODE = os.getenv("AUTOPASS_VERIFIER", "auto")  # auto|precompile|software
VERIFIER_MODES = ("auto", "precompile", "software")

# Well-known address of the native P256 verification endpoint
P256_VERIFIER_ADDRESS = os.getenv(
    "AUTOPASS_P256_VERIFIER_ADDRESS",
    "0x0000000000000000000000000000000000000100",
)

# Deploy the native endpoint into service environments at startup
DEPLOY_NATIVE_VERIFIER = os.getenv("AUTOPASS_DEPLOY_NATIVE_VERIFIER", "1").lower() in ("1", "true", "yes")

# Module addresses inside the service environment
REGISTRY_ADDRESS = os.getenv(
    "AUTOPASS_REGISTRY_ADDRESS",
    "0x00000000000000000000000000000000000a0001",
)
AUTOMATION_ADDRESS = os.getenv(
    "AUTOPASS_AUTOMATION_ADDRESS",
    "0x00000000000000000000000000000000000a0002",
)

# Logging
LOG_LEVEL = os.getenv("AUTOPASS_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("AUTOPASS_LOG_JSON", "1").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("AUTOPASS_LOG_FILE", "")

# Shared secret for whitelist administration over HTTP
ADMIN_TOKEN = os.getenv("AUTOPASS_ADMIN_TOKEN", "")


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate configuration values.
    Returns dict of setting -> ok.
    """
    from .environment import ADDRESS_PATTERN

    return {
        "verifier_mode": VERIFIER_MODE in VERIFIER_MODES,
        "p256_verifier_address": bool(ADDRESS_PATTERN.match(P256_VERIFIER_ADDRESS)),
        "registry_address": bool(ADDRESS_PATTERN.match(REGISTRY_ADDRESS)),
        "automation_address": bool(ADDRESS_PATTERN.match(AUTOMATION_ADDRESS)),
        "admin_token": bool(ADMIN_TOKEN) or not is_production(),
    }


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("AUTOPASS_DEBUG", "").lower() in ("1", "true", "yes")

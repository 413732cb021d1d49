"""Configuration for the Medplum tool server.

Loads settings from environment variables (via a .env file or the system
environment). Every setting has a default so the package can be imported
in CI without real credentials.

Missing credentials are only reported when the first tool call needs a
session, as an AuthenticationError inside the result envelope.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (it won't in CI or Docker)
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in ("0", "false", "no", "off", "")


# --- Medplum connection ---
# Base URL of the Medplum server. The FHIR API, the OAuth2 token endpoint
# and the admin API all live under it.
MEDPLUM_BASE_URL: str = os.getenv("MEDPLUM_BASE_URL", "https://api.medplum.com/")

# Path of the FHIR R4 API relative to the base URL.
MEDPLUM_FHIR_PATH: str = os.getenv("MEDPLUM_FHIR_PATH", "fhir/R4")

# OAuth2 client credentials of a Medplum ClientApplication.
MEDPLUM_CLIENT_ID: str = os.getenv("MEDPLUM_CLIENT_ID", "")
MEDPLUM_CLIENT_SECRET: str = os.getenv("MEDPLUM_CLIENT_SECRET", "")

# Self-hosted servers often run with self-signed certificates.
MEDPLUM_SSL_VERIFY: bool = _flag("MEDPLUM_SSL_VERIFY", "true")

# Seconds before a single HTTP request to Medplum is abandoned.
MEDPLUM_TIMEOUT: float = float(os.getenv("MEDPLUM_TIMEOUT", "30"))

# --- Tool catalog ---
# When enabled, the catalog also publishes create/get/update/delete/search
# tools for every known resource type (e.g. createPatient, searchObservation).
MEDPLUM_GENERIC_TOOLS: bool = _flag("MEDPLUM_GENERIC_TOOLS", "false")

# --- Logging ---
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

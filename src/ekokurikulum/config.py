from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Root of the project (repo root)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# ---------------------------------------------------------------------------
# App identity
# ---------------------------------------------------------------------------

APP_NAME = "Sistem e-Kokurikulum"
APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Remote data source (Google Apps Script web app backed by the school sheet)
#
# Every call is a plain GET with an `action` query parameter:
#   ?action=login&q=<identifier>
#   ?action=data&id=<user id>
#   ?action=statistik&id=<user id>
#   ?action=pdf&id=<user id>        (opened by the browser, never fetched here)
#
# Apps Script answers with a 302 to googleusercontent.com, so redirects must
# be followed.
# ---------------------------------------------------------------------------

DEFAULT_API_URL = (
    "https://script.google.com/macros/s/"
    "AKfycbwpjBajVe3CUGXxBA0VlMWOlW2i2ul_Et9aoDKfsTRCJ0DObhRF1DvrxGmGfFzwdl65Tw/exec"
)

API_URL = os.getenv("EKOKU_API_URL", DEFAULT_API_URL).strip() or DEFAULT_API_URL

# Seconds before a single request is abandoned and the fallback data is used
HTTP_TIMEOUT_SECONDS = float(os.getenv("EKOKU_HTTP_TIMEOUT", "30").strip() or 30)

# One attempt per operation unless overridden; fallbacks cover failures
API_MAX_RETRIES = int(os.getenv("EKOKU_API_MAX_RETRIES", "0").strip() or 0)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("EKOKU_LOG_LEVEL", "INFO").strip().upper() or "INFO"

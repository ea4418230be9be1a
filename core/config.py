# Purpose: This file defines configuration constants for the Bond Generator application.
# It centralizes canonical field names, file-type settings and the logging layout
# so they can be adjusted without modifying the pipeline code.
# Runtime-tunable values (aliases, numbering defaults, worker counts, tokens) live in settings.yaml.

"""
Configuration settings for the Flask application and the bond assembly pipeline.
"""

from pathlib import Path
from typing import Dict, List

# Base directory of the application (project root, parent of core/)
BASE_DIR = Path(__file__).resolve().parent.parent

# Environment variable that overrides app_config.data_folder in settings.yaml
DATA_FOLDER_ENV_VAR = "BOND_GENERATOR_DATA_FOLDER"

# Default data folder name (relative to the project root)
DEFAULT_DATA_FOLDER = "Data"

# Sub-folder of the data folder holding saved workflow drafts
DRAFTS_SUBFOLDER = "drafts"

# --- Canonical schedule field names ---
MATURITY_DATE_FIELD = "maturity_date"
PRINCIPAL_AMOUNT_FIELD = "principal_amount"
COUPON_RATE_FIELD = "coupon_rate"
DATED_DATE_FIELD = "dated_date"
SERIES_FIELD = "series"
CUSIP_FIELD = "cusip"
CUSIP_ISSUER_FIELD = "cusip_issuer"
CUSIP_ISSUE_FIELD = "cusip_issue"
CUSIP_CHECK_FIELD = "cusip_check"

# Required/optional columns per schedule type
MATURITY_REQUIRED_FIELDS: List[str] = [
    MATURITY_DATE_FIELD,
    PRINCIPAL_AMOUNT_FIELD,
    COUPON_RATE_FIELD,
]
MATURITY_OPTIONAL_FIELDS: List[str] = [DATED_DATE_FIELD, SERIES_FIELD]
CUSIP_REQUIRED_FIELDS: List[str] = [CUSIP_FIELD, MATURITY_DATE_FIELD]
CUSIP_SPLIT_REQUIRED_FIELDS: List[str] = [
    CUSIP_ISSUER_FIELD,
    CUSIP_ISSUE_FIELD,
    CUSIP_CHECK_FIELD,
    MATURITY_DATE_FIELD,
]
CUSIP_OPTIONAL_FIELDS: List[str] = [SERIES_FIELD]

# Keywords used to locate the header row in loosely formatted spreadsheets
MATURITY_HEADER_KEYWORDS: List[str] = ["maturity", "principal", "amount", "rate"]
CUSIP_HEADER_KEYWORDS: List[str] = ["cusip", "maturity", "date"]

# Number of leading rows scanned when looking for the header row
HEADER_SCAN_LIMIT = 10

# Default column aliases (settings.yaml bond_generator.column_aliases extends/overrides these)
DEFAULT_COLUMN_ALIASES: Dict[str, List[str]] = {
    MATURITY_DATE_FIELD: ["maturity date", "maturity", "date", "mat date", "mat. date"],
    PRINCIPAL_AMOUNT_FIELD: [
        "principal amount",
        "principal",
        "amount",
        "par amount",
        "par",
        "face amount",
    ],
    COUPON_RATE_FIELD: [
        "coupon rate",
        "coupon",
        "rate",
        "interest rate",
        "interest",
        "int rate",
    ],
    DATED_DATE_FIELD: ["dated date", "dated", "issue date", "dated as of"],
    SERIES_FIELD: ["series", "series name", "bond series"],
    CUSIP_FIELD: ["cusip", "cusip no", "cusip number", "cusip #"],
    CUSIP_ISSUER_FIELD: ["issuer number", "issuer num", "cusip issuer"],
    CUSIP_ISSUE_FIELD: ["issue number", "issue num", "cusip issue"],
    CUSIP_CHECK_FIELD: ["check digit", "issue check digit", "check", "cusip check"],
}

# --- Bond numbering defaults ---
DEFAULT_BOND_PREFIX = "BOND-"
MIN_BOND_NUMBER_WIDTH = 3

# --- Document filling / packaging ---
DEFAULT_FILL_WORKERS = 4
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
ZIP_MIME_TYPE = "application/zip"
DEFAULT_ARCHIVE_NAME = "bond_certificates.zip"
MAX_FILENAME_COMPONENT = 50

# Upload size guard applied by the HTTP layer (bytes)
MAX_UPLOAD_BYTES = 20 * 1024 * 1024

# Logging configuration (applied by app.create_app)
LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"
LOG_MAX_BYTES = 1024 * 1024 * 10  # 10 MB
LOG_BACKUP_COUNT = 5
LOG_FILE_NAME = "app.log"

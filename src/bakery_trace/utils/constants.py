"""
Constants for the Bakery Trace application.

This module defines system-wide constants including:
- Application metadata
- Units of measure used on receiving paperwork
- Storage conditions
- Batch and product code conventions
"""

from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Bakery Trace"
APP_VERSION = "0.1.0"
DATABASE_FILENAME = "bakery_trace.db"

# ============================================================================
# Units
# ============================================================================

WEIGHT_UNITS: List[str] = [
    "kg",  # Kilogram
    "g",  # Gram
]

VOLUME_UNITS: List[str] = [
    "L",  # Litre
    "ml",  # Millilitre
]

COUNT_UNITS: List[str] = [
    "pcs",  # Pieces
    "bag",
    "box",
]

ALL_UNITS: List[str] = WEIGHT_UNITS + VOLUME_UNITS + COUNT_UNITS

# ============================================================================
# Storage
# ============================================================================

STORAGE_AMBIENT = "Ambient"
STORAGE_CHILLED = "Chilled"
STORAGE_FROZEN = "Frozen"

STORAGE_CONDITIONS: List[str] = [STORAGE_AMBIENT, STORAGE_CHILLED, STORAGE_FROZEN]

# ============================================================================
# Codes
# ============================================================================

# Suggested intermediate batch code prefixes, e.g. DOUGH-101, FILL-042
DOUGH_CODE_PREFIX = "DOUGH"
FILLING_CODE_PREFIX = "FILL"

# Product batch codes encode the production day as ddmmyy (e.g. 260524)
PRODUCT_BATCH_CODE_FORMAT = "%d%m%y"

# Field limits
MAX_CODE_LENGTH = 100
MAX_NAME_LENGTH = 200
MAX_USER_LENGTH = 100

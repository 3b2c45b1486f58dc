"""Configuration constants for the screen matching engine.

This file centralizes thresholds for template matching, color detection and
digit recognition, along with the coordinate conventions shared by the
extraction and deduplication passes.
"""

# ============================================
# Template Matching Thresholds
# ============================================

# Minimum correlation score for single/multi template lookups
DEFAULT_TEMPLATE_CONFIDENCE = 0.75

# Glyph hits use a stricter cut than general templates
DEFAULT_DIGIT_CONFIDENCE = 0.9

# Color (BGR, all channels) matching unless the caller asks for luma
DEFAULT_RGB_MODE = True


# ============================================
# Color Detection
# ============================================

# Manhattan distance in RGB space (0..765)
DEFAULT_COLOR_TOLERANCE = 10
MAX_COLOR_DIFFERENCE = 765

# Returned by the compatibility coordinate APIs when nothing matched
NOT_FOUND_SENTINEL = (0, 0)

# Pixels scored per vectorized step; the scan stops at the first step with a hit
COLOR_SCAN_CHUNK_PIXELS = 1 << 16


# ============================================
# Digit Recognition
# ============================================

DIGITS = tuple(range(10))

# One task per glyph, never more
MAX_DIGIT_WORKERS = len(DIGITS)

# Tried in order for each digit file: <library>/<digit><ext>
DEFAULT_GLYPH_EXTENSIONS = (".bmp", ".png")


# ============================================
# Buffer Layout
# ============================================

GRAY_CHANNELS = 1
COLOR_CHANNELS = 3

# Environment variable prefix for MatchSettings
ENV_PREFIX = "SCREEN_MATCHER_"

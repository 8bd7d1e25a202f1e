"""
Core Module - Constants.

Values shared by the content and storage packages.
"""

# ============================================================
# CONTENT TYPES
# ============================================================

CONTENT_TYPE_PAGE = "Page"
CONTENT_TYPE_BLOG = "Blog"

CONTENT_TYPES = (CONTENT_TYPE_PAGE, CONTENT_TYPE_BLOG)

# ============================================================
# PAGE TREE
# ============================================================

# Sort order of a site's start page within the root group
STARTPAGE_SORT_ORDER = 0

# ============================================================
# COLUMN SIZES
# ============================================================

MAX_TITLE_LENGTH = 128
MAX_SLUG_LENGTH = 128
MAX_ROUTE_LENGTH = 256
MAX_TYPE_ID_LENGTH = 64
MAX_TYPE_TAG_LENGTH = 256

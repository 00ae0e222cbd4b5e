"""Core type definitions."""

from typing import NewType

# Page title as used for storage lookups (e.g., "FrontPage")
# Only produced by validate_title, so holders know it is path-safe
PageTitle = NewType("PageTitle", str)

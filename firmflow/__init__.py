"""Service lifecycle API for professional-services firms."""

"""Command-line administration for the EduPortal data layer."""

"""HTTP API for the EduPortal data layer."""

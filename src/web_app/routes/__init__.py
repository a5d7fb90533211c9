"""HTTP routes of the upload service."""

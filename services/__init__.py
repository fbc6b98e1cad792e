"""Path resolution, listing, reading and streaming ZIP downloads for the file tree API."""

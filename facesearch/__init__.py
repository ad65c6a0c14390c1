"""Face folder search: find the photos of a remote folder that contain a given face."""

"""Media resolution, compression and upload."""

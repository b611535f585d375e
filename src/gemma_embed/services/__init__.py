"""Model resolution, backends and inference façades."""

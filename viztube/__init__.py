"""VizTube: video sharing platform backend."""

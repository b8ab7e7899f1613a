"""Build-time pipeline: scanning, static parsing, route compilation, generation."""

"""Command line tools for the HLS stream proxy."""

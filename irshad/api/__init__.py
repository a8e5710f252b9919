"""HTTP API for the Masjid Irshad website."""

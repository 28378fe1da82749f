"""Product catalogue service with image/video media storage."""

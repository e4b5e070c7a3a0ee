"""HTTP server package for the transcription gateway."""

"""Web front end for uploading XForm definitions."""

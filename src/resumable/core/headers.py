"""HTTP header names shared by the client and the server."""

# Identifies the upload session that owns an artifact's lease
SESSION_HEADER = "Upload-Session"

"""Settings and user-identity storage for the chat bot backend."""

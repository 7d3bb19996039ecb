"""Built-in CLI commands registered on the root ``cachegate`` application."""

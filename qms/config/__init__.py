"""Settings schema and YAML loader."""

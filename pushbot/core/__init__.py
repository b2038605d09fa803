"""Lifecycle core: models, config, controllers and registry."""

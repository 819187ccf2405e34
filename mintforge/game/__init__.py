"""Game services: stat rolling, progression, creation and registry."""

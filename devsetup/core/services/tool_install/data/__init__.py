"""L0 Data — pure data, no logic."""

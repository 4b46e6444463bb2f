"""
Configuration module.

Process configuration comes from defaults merged with a YAML file; runtime
settings come from the shared settings table through SignalSettings.
"""

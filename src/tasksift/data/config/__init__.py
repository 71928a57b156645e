"""Default TOML configuration files shipped with tasksift."""

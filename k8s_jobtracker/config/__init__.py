"""Configuration loading for k8s_jobtracker."""

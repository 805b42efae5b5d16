"""HTTP transports for the Rspamd client."""

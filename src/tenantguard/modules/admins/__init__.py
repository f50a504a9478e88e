"""Super admin module - platform operators outside any tenant."""

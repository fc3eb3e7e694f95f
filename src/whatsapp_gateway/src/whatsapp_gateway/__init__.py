"""WhatsApp gateway: relays WhatsApp messages to the orchestrator and exposes a control API."""

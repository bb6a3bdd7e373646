"""Provider transports: WhatsApp Cloud webhooks and sender, Twilio voice."""

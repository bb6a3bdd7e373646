"""
Twilio Voice Transport

Turns forwarded (missed) calls into relay follow-ups.
Exports: voice_router, parse_voice_form, HANGUP_TWIML
"""

from transport.twilio.voice import HANGUP_TWIML, VoiceCall, parse_voice_form, voice_router

__all__ = [
    "HANGUP_TWIML",
    "VoiceCall",
    "parse_voice_form",
    "voice_router",
]

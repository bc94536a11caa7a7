"""ChatVibes web API - Twitch TTS bot control plane"""

__version__ = "1.0.0"

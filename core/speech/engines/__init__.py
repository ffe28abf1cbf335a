"""Speech capability implementations.

Importing this package registers every capability with ``SpeechCapability``.

Modules:
- GoogleSpeechPlayer: Google Text-to-Speech synthesis played through PyAudio.
"""

from core.speech.engines.gtts_player import GoogleSpeechPlayer

__all__: list[str] = ["GoogleSpeechPlayer"]

# providers/__init__.py
"""
Asuna Relay Providers

- gemini_client.py : GeminiTextBackend (google-generativeai)
- tts_client.py    : OpenAISpeechBackend (openai audio.speech)

Import the concrete module you need; the SDKs are only loaded then.
"""
